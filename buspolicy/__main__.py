import os

from dotenv import load_dotenv

from buspolicy.cli.commands import app

# BUSPOLICY_* source overrides may live in ~/.buspolicy/.env; the process
# environment still wins over anything set there.
load_dotenv(os.path.expanduser("~/.buspolicy/.env"), override=False)

if __name__ == "__main__":
    app()
