from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

"""Application entry point for the reading-tracker API.

The SQLite schema is created by the app factory, so startup needs no
separate migration step.
"""

from yomu import create_app

# This app is intended to be run via Gunicorn only
app = create_app()
if __name__ == '__main__':
    import os
    import sys

    command = [
        "gunicorn",
        "-w", "1",
        "-b", f"0.0.0.0:{os.environ.get('PORT', '3001')}",
        "run:app"
    ]

    print(f"Launching Gunicorn with command: {' '.join(command)}")
    try:
        os.execvp(command[0], command)
    except FileNotFoundError:
        print("Error: 'gunicorn' command not found.", file=sys.stderr)
        print("Please install Gunicorn: pip install gunicorn", file=sys.stderr)
        sys.exit(1)
