import os, time, logging
from html import unescape
from flask import Flask, request, jsonify, Response
from flask_cors import CORS
import bleach

from access_control import AccessSession, AccessState
from database import FileDatabase
from errors import (ExpiredLink, GatewayUnavailable, IncorrectPassword, InvalidDescriptor,
                    InvalidLink, MalformedContentId, PasswordRequired, PinataError)
from gateways import GatewayResolver
from pinata import PinataClient
from public_config import ShareConfig
from share_links import create_share_link, decode_share_link, file_kind, is_share_link

logger = logging.getLogger(__name__)

# Detect production environment (Heroku provides PORT env var)
IS_PRODUCTION = os.environ.get('PORT') is not None or os.environ.get('DYNO') is not None

DEV_ORIGINS = ["http://localhost:5173", "http://localhost:5000"]

INVALID_LINK_DETAIL = "This share link may be invalid or expired."
EXPIRED_LINK_DETAIL = "This share link has expired and is no longer accessible."


# =============  SECURITY FUNCTIONS  =============
def sanitize_file_name(name):
    """Strip markup and path separators from an uploaded file name"""
    if not isinstance(name, str):
        return 'unnamed'

    # bleach escapes what it keeps; unescape so the stored name is plain text
    text = unescape(bleach.clean(name, tags=set(), attributes={}, strip=True))
    for char in ('<', '>', '/', '\\', '\0'):
        text = text.replace(char, '_' if char in ('/', '\\') else '')

    text = text.strip('. ')
    return text or 'unnamed'


def _error(message, status, **extra):
    body = {"error": message}
    body.update(extra)
    return jsonify(body), status


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def create_app(config=None, db=None, pinata=None, resolver=None):
    config = config or ShareConfig.from_env()
    db = db or FileDatabase(config.db_path)
    pinata = pinata or PinataClient(config)
    resolver = resolver or GatewayResolver.from_config(config)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.max_upload_mb * 1024 * 1024
    app.config["SHARE_CONFIG"] = config
    CORS(app, origins=["*"] if IS_PRODUCTION else DEV_ORIGINS + [config.base_url])

    if pinata.enabled:
        print(f"✅ Pinata {pinata.version} configured from environment")
    else:
        print("❌ Pinata not configured - uploads are disabled")
    print(f"🔗 Share links: {config.base_url}")
    print(f"🌐 Gateways: {', '.join(config.gateways)}")

    def share_payload(descriptor):
        cid = descriptor.content_id
        return {
            "cid": cid,
            "file_name": descriptor.display_name,
            "file_type": file_kind(descriptor.display_name),
            "protected": descriptor.is_protected,
            "expires_at": descriptor.expires_at_ms,
            "preferred_url": resolver.preferred_url(cid),
            "urls": resolver.all_urls(cid),
            "download_url": resolver.download_url(cid, descriptor.display_name),
            "download_urls": resolver.download_urls(cid, descriptor.display_name),
        }

    def open_share(link, password=None):
        """Decode a share link and run the access check for one viewing"""
        try:
            descriptor = decode_share_link(link)
            if descriptor is None:
                return _error("Not a share link", 404)
            session = AccessSession(descriptor)

            if password is not None and session.state is AccessState.UNVERIFIED:
                session.verify(password)
            session.check_access()
        except ExpiredLink as e:
            return _error(e.message, 410, state=AccessState.EXPIRED.value, detail=EXPIRED_LINK_DETAIL)
        except InvalidLink as e:
            return _error(e.message, 400, detail=INVALID_LINK_DETAIL)
        except (IncorrectPassword, PasswordRequired) as e:
            return _error(e.message, 401, state=AccessState.UNVERIFIED.value, protected=True,
                          file_name=descriptor.display_name)

        payload = share_payload(descriptor)
        payload["state"] = session.state.value
        return jsonify(payload)

    # ---------- routes ----------
    @app.route("/")
    def index():
        query = request.query_string.decode("utf-8", "replace")
        if is_share_link(query):
            return open_share(query)
        return jsonify({"service": "ipfs-share-vault", "ok": True})

    @app.route("/health")
    def health():
        return {"ok": True, "ts": int(time.time())}

    @app.route("/system_info")
    def system_info():
        """Return system configuration information"""
        return jsonify({
            "pinata_enabled": pinata.enabled,
            "pinata_version": pinata.version,
            "gateways": config.gateways,
            "share_base_url": config.base_url,
            "password_scheme": config.password_scheme,
            "timestamp": int(time.time())
        })

    @app.route("/api/share", methods=["POST"])
    def create_share():
        data = _json_body()
        expiry_days = data.get("expiry_days")
        password = data.get("password") or None
        if password is not None and not isinstance(password, str):
            return _error("password must be a string", 400)
        try:
            url, descriptor = create_share_link(
                str(data.get("cid") or ""),
                str(data.get("file_name") or ""),
                config,
                password=password,
                expiry_days=expiry_days or None,
            )
        except InvalidDescriptor as e:
            return _error(e.message, 400)
        except (TypeError, ValueError, OverflowError) as e:
            return _error(f"Invalid expiry_days: {e}", 400)

        return jsonify({
            "url": url,
            "protected": descriptor.is_protected,
            "expires_at": descriptor.expires_at_ms
        })

    @app.route("/api/share/open", methods=["POST"])
    def open_share_route():
        data = _json_body()
        link = data.get("url")
        if not link or not isinstance(link, str):
            return _error("Missing url", 400)
        password = data.get("password")
        if password is not None and not isinstance(password, str):
            return _error("password must be a string", 400)
        return open_share(link, password)

    @app.route("/api/files", methods=["POST"])
    def upload_file():
        if not pinata.enabled:
            return _error("Pinata not configured", 503)

        upload = request.files.get("file")
        if upload is None or not upload.filename:
            return _error("Missing file", 400)

        user_id = request.form.get("user_id", "")
        wallet_address = request.form.get("wallet_address", "")
        if not user_id and not wallet_address:
            return _error("user_id or wallet_address is required", 400)

        name = sanitize_file_name(upload.filename)
        file_bytes = upload.read()
        content_type = upload.mimetype or "application/octet-stream"

        try:
            cid = pinata.upload(file_bytes, name, content_type)
        except PinataError as e:
            logger.error(f"Upload of {name} failed: {e}")
            return _error(str(e), 502)

        record = {
            "name": name,
            "type": content_type,
            "size": len(file_bytes),
            "cid": cid,
            "user_id": user_id,
            "wallet_address": wallet_address
        }
        file_id = db.insert_file(record)
        if file_id is None:
            return _error("Could not save file record", 500, cid=cid)

        record["id"] = file_id
        record["preferred_url"] = resolver.preferred_url(cid)
        record["urls"] = resolver.all_urls(cid)
        return jsonify(record), 201

    @app.route("/api/files", methods=["GET"])
    def list_files():
        user_id = request.args.get("user_id", "").strip()
        wallet_address = request.args.get("wallet_address", "").strip()
        if not user_id and not wallet_address:
            return _error("user_id or wallet_address is required", 400)

        files = db.get_user_files(user_id, wallet_address)
        for f in files:
            f["preferred_url"] = resolver.preferred_url(f["cid"])
        return jsonify({"success": True, "files": files, "count": len(files)})

    @app.route("/api/files/<file_id>", methods=["DELETE"])
    def delete_file(file_id):
        if not db.delete_file(file_id):
            return _error("File not found", 404)
        return {"ok": True}

    @app.route("/api/gateways/<cid>")
    def gateway_urls(cid):
        return jsonify({
            "cid": cid,
            "well_formed": resolver.is_well_formed(cid),
            "preferred_url": resolver.preferred_url(cid),
            "urls": resolver.all_urls(cid),
            "download_url": resolver.download_url(cid, request.args.get("filename")),
        })

    @app.route("/ipfs/<cid>")
    def serve_ipfs(cid):
        try:
            url, response = resolver.fetch_with_failover(cid)
        except MalformedContentId as e:
            return _error(e.message, 400)
        except GatewayUnavailable as e:
            logger.error(str(e))
            return _error("Content unavailable on all gateways", 502)

        content_type = response.headers.get("Content-Type", "application/octet-stream")
        return Response(response.content, status=200, headers={
            "Content-Type": content_type,
            "X-Gateway-Url": url
        })

    return app


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    debug = os.environ.get('FLASK_ENV') == 'development'
    create_app().run(host='0.0.0.0', port=port, debug=debug)
