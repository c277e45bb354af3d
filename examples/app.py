import logging
import os
import secrets
import sys

from dotenv import load_dotenv
from flask import Flask, abort, redirect, request, session, url_for

from flask_drive_folder_auth import Config, require_authorized, setup_authorization_routes

# Load environment variables from .env file (for local development)
load_dotenv()

app = Flask(__name__)
# Sessions carry the signed-in user's addresses; use a fixed key in production
app.secret_key = os.getenv('SECRET_KEY') or secrets.token_hex(32)

# Configure logging for Cloud Run
# Cloud Run captures logs from stdout/stderr, so we need to ensure logs go there
if not app.debug:
    # Production logging for Cloud Run
    gunicorn_logger = logging.getLogger('gunicorn.error')
    app.logger.handlers = gunicorn_logger.handlers
    app.logger.setLevel(gunicorn_logger.level)

    # Send the module's own log records through the same handlers
    package_logger = logging.getLogger('flask_drive_folder_auth')
    package_logger.handlers = app.logger.handlers
    package_logger.setLevel(app.logger.level)
    package_logger.propagate = False
else:
    # Development logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stdout,
        force=True
    )

# Ensure all logs go to stdout (Cloud Run requirement)
for handler in app.logger.handlers:
    handler.setStream(sys.stdout)

app.logger.info("Flask app starting up...")

# Initialize the flask_drive_folder_auth module
config = Config(app)

# Authorization endpoint: GET /authorize?user=someone@gmail.com
setup_authorization_routes(app)


# ============================================================================
# Sign-in
# ============================================================================
# A real deployment puts the signed-in user's addresses in the session from
# its OAuth login callback, as session['user_emails'] (list) or
# session['user_email']. For local development, /dev/sign-in does the same
# from the query string:
#
#     /dev/sign-in?email=alice@gmail.com&email=alice@example.com
#
# It is only registered when debugging or when DEV_SIGN_IN=1.

if app.debug or os.getenv('DEV_SIGN_IN') == '1':
    @app.route('/dev/sign-in')
    def dev_sign_in():
        """Sign in as the given addresses without a login provider."""
        emails = request.args.getlist('email') or [os.getenv('TEST_EMAIL', 'test@example.com')]
        emails = [email for email in emails if email]
        if not emails:
            abort(400)

        session['user_emails'] = emails
        session['user_email'] = emails[0]
        app.logger.info(f"Development sign-in as {emails}")
        return redirect(request.args.get('next') or url_for('library_route'))


@app.route('/sign-out')
def sign_out():
    session.clear()
    return redirect(url_for('home'))


# ============================================================================
# Protected routes
# ============================================================================

@app.route('/library')
@require_authorized
def library_route():
    """
    Accessible to anyone the Drive folder is shared with, directly or
    through a Google Group.
    """
    return f"<h1>Library</h1><p>Welcome {session.get('user_email')}!</p>"


@app.route('/')
def home():
    """Public home page."""
    return "<h1>Drive Folder Gate Example</h1><p>Try <a href=\"/library\">/library</a>.</p>"


if __name__ == '__main__':
    app.run(debug=True, port=8080)
