"""Entry point shim: `gunicorn app:app` serves the tip calculator screen,
`python app.py tip --amount 50` runs the command line instead.
"""

from web_app import app as app  # WSGI app for Gunicorn


if __name__ == "__main__":
    from cli import main

    main()
