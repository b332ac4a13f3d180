"""Allow `python -m mail_journal`."""

from mail_journal.cli.commands import app

if __name__ == "__main__":
    app()
