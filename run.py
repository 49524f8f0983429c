#!/usr/bin/env python3
"""Command line runner"""
from craftbackup.commands.backup_commands import main

if __name__ == '__main__':
    # e.g. ./run.py backup run /srv/www/craftcms --silent
    main()
