import logging
from typing import Callable, Optional

from flask import Flask, jsonify, request

from errors import AuthenticationError, MailboxError
from settings import Settings, load_settings
from verification_code_poller import VerificationCodePoller, build_poller

logger = logging.getLogger("verification_server")


def create_app(settings: Optional[Settings] = None,
               poller_factory: Optional[Callable[[Settings], VerificationCodePoller]] = None) -> Flask:
    """
    Build the HTTP front for the poller.

    Every request to /verification-code runs a full poll session, so a
    request can take up to attempts x delay seconds to answer.
    """
    settings = settings or load_settings()
    poller_factory = poller_factory or build_poller

    app = Flask(__name__)
    app.config["settings"] = settings

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok", "timezone": settings.timezone})

    @app.route("/verification-code", methods=["GET"])
    def verification_code():
        account_id = request.args.get("accountId") or settings.account_id
        if not account_id:
            return jsonify({"success": False, "error": "accountId is required"}), 400

        try:
            outcome = poller_factory(settings).poll(account_id)
        except AuthenticationError as e:
            logger.error(f"Cannot poll account {account_id}: {e}")
            return jsonify({"success": False, "error": str(e)}), 401
        except MailboxError as e:
            logger.error(f"Polling aborted for account {account_id}: {e}")
            return jsonify({"success": False, "error": str(e)}), 502

        return jsonify(outcome.to_dict()), 200 if outcome.found else 404

    return app
