#!/usr/bin/env python3
"""apass - Command-line secret manager.
Stores key/value pairs in an encrypted file and syncs it through git.
"""

import argparse
import getpass
import os
import sys
from pathlib import Path

from . import __version__
from .audit import AuditLogger
from .errors import ApassError
from .session import PASSWORD_QUESTION, Session
from .sync import SyncAdapter
from .vault import DEFAULT_VAULT, SecretVault

DEFAULT_AUDIT_LOG = Path.home() / ".apass" / "access.log"


def get_vault_path(args_vault=None):
    """Get vault directory from args, APASS_VAULT, or default."""
    if args_vault:
        return Path(args_vault)
    env_vault = os.environ.get('APASS_VAULT')
    return Path(env_vault) if env_vault else DEFAULT_VAULT


def get_password():
    """Get master password from the APASS_PASSWORD environment variable.

    Returns None when unset, leaving the vault to prompt on first use.

    Security note: Using APASS_PASSWORD in environment variables is less secure
    as it may be visible in process lists. Only use in isolated environments.
    """
    return os.environ.get('APASS_PASSWORD') or None


def get_repo():
    """Get default remote repository from APASS_REPO."""
    return os.environ.get('APASS_REPO') or None


def get_audit_logger():
    """Get the audit logger at APASS_AUDIT_LOG or the default location."""
    log_path = os.environ.get('APASS_AUDIT_LOG')
    return AuditLogger(Path(log_path) if log_path else DEFAULT_AUDIT_LOG)


def ask(question):
    """Prompt the terminal; the master password is read without echo."""
    if question == PASSWORD_QUESTION:
        return getpass.getpass(f"{question}: ")
    return input(f"{question}: ").strip()


def build_session():
    return Session(password=get_password(), prompt=ask)


def build_vault(args, session=None):
    return SecretVault(
        get_vault_path(args.vault),
        repo=get_repo(),
        session=session or build_session(),
        audit_logger=get_audit_logger()
    )


def build_sync(args, session=None):
    return SyncAdapter(
        get_vault_path(args.vault),
        repo=get_repo(),
        session=session or build_session(),
        audit_logger=get_audit_logger()
    )


def print_pairs(data):
    for key, val in data.items():
        print(f"{key}: {val}")
    print()


def cmd_get(args):
    """Get a secret value."""
    val = build_vault(args).get(args.key)
    if args.raw:
        if val is not None:
            sys.stdout.write(val)
        return
    print(f'Value for "{args.key}": ')
    print()
    print(val if val is not None else "")
    print()


def cmd_all(args):
    """Get all values."""
    data = build_vault(args).all()
    print("All values: ")
    print()
    print_pairs(data)


def cmd_grep(args):
    """Grep values."""
    data = build_vault(args).grep(args.keyword)
    print("Grepped values: ")
    print()
    print_pairs(data)


def cmd_keys(args):
    """List secret keys."""
    keys = build_vault(args).keys()
    if not keys:
        print("No keys available!", file=sys.stderr)
        print()
        return
    print("Available keys: ")
    print(os.linesep.join(keys))
    print()


def cmd_set(args):
    """Set a secret value."""
    build_vault(args).set(args.key, args.val)
    print(f'Value saved for "{args.key}".')


def cmd_del(args):
    """Delete a secret value."""
    build_vault(args).delete(args.key)
    print(f'Key deleted for "{args.key}".')


def cmd_passwd(args):
    """Update password."""
    build_vault(args).passwd(args.password)
    print("Password updated.")


def cmd_bind(args):
    """Bind to remote git repo."""
    print("Binding to remote git...")
    build_sync(args).bind(args.remote)
    print("...binding done!")


def cmd_pull(args):
    """Pull from git repo."""
    print("Pulling from git...")
    build_sync(args).pull()
    print("...pulling done!")


def cmd_push(args):
    """Push to git repo."""
    print("Pushing to git...")
    build_sync(args).push()
    print("...pushing done!")


def build_parser():
    parser = argparse.ArgumentParser(
        prog='apass',
        description="apass - Secret manager with git sync"
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument('--vault', help='Vault directory (default: $APASS_VAULT or ~/.apass/vault)')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    get_parser = subparsers.add_parser('get', help='Get a secret value')
    get_parser.add_argument('key', help='Secret key')
    get_parser.add_argument('-r', '--raw', action='store_true', help='Output raw data only')

    subparsers.add_parser('all', help='Get all values')

    grep_parser = subparsers.add_parser('grep', help='Grep values')
    grep_parser.add_argument('keyword', help='Substring or regular expression')

    subparsers.add_parser('keys', help='List secret keys')

    set_parser = subparsers.add_parser('set', help='Set a secret value')
    set_parser.add_argument('key', help='Secret key')
    set_parser.add_argument('val', help='Value to save')

    del_parser = subparsers.add_parser('del', help='Delete a secret value')
    del_parser.add_argument('key', help='Secret key')

    passwd_parser = subparsers.add_parser('passwd', help='Update password')
    passwd_parser.add_argument('password', help='New master password')

    bind_parser = subparsers.add_parser('bind', help='Bind to remote git repo')
    bind_parser.add_argument('remote', nargs='?', help='Remote repository URL')

    subparsers.add_parser('pull', help='Pull from git repo')
    subparsers.add_parser('push', help='Push to git repo')

    return parser


COMMANDS = {
    'get': cmd_get,
    'all': cmd_all,
    'grep': cmd_grep,
    'keys': cmd_keys,
    'set': cmd_set,
    'del': cmd_del,
    'passwd': cmd_passwd,
    'bind': cmd_bind,
    'pull': cmd_pull,
    'push': cmd_push,
}


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        COMMANDS[args.command](args)
    except (ApassError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (KeyboardInterrupt, EOFError):
        print(file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
