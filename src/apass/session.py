"""Session - Master password state shared by vault operations.

A session resolves the master password once per process, either from the
value injected at construction or by asking the prompt collaborator, and
hands the same password to every subsequent read and write.
"""

from typing import Callable, Optional

from .errors import PasswordRequired

Prompt = Callable[[str], Optional[str]]

PASSWORD_QUESTION = "Master password"


class Session:
    """Holds the resolved master password and the prompt used to obtain it."""

    def __init__(self, password: Optional[str] = None, prompt: Optional[Prompt] = None):
        self.password = password or None
        self.prompt = prompt

    def ask(self, question: str) -> Optional[str]:
        """Ask the prompt collaborator a question.

        Args:
            question: Question text, without trailing punctuation

        Returns:
            The answer, or None when no prompt is configured

        """
        if self.prompt is None:
            return None
        return self.prompt(question)

    def resolve_password(self) -> str:
        """Return the cached password, prompting for it if necessary.

        Raises:
            PasswordRequired: If no password is available

        """
        if not self.password:
            self.password = self.ask(PASSWORD_QUESTION) or None
        if not self.password:
            raise PasswordRequired()
        return self.password
