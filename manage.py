#!/usr/bin/env python
"""Django's command-line utility for the BloodLink project."""
import os
import sys

from dotenv import load_dotenv


def main():
    """Run administrative tasks."""
    # Values already exported in the shell win over the local .env file.
    load_dotenv(override=False)
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'bloodlink.settings')
    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Are you sure it's installed and "
            "available on your PYTHONPATH environment variable? Did you "
            "forget to activate a virtual environment?"
        ) from exc
    execute_from_command_line(sys.argv)


if __name__ == '__main__':
    main()
