from flask import Flask, request, jsonify, send_file
import base64, io, logging, os, uuid

from analyzer import AnalysisResult
from consent_store import ConsentStore
from errors import (
    ConsentAnalyzerError, ValidationError, InvalidDecisionError, DocumentRejectedError,
    RemoteRateLimitedError, RemoteQuotaExceededError, RemoteError,
)
from llm import run_consent_analysis, llm_status
from orchestrator import AnalysisOrchestrator, parse_payload, IMAGE_PREFIX, PDF_PREFIX, DOC_PREFIX

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "consent-analyzer-dev-key")

orchestrator = AnalysisOrchestrator()
store = ConsentStore()

# ── In-memory result cache ───────────────────────────────────────────────────
_cache: dict = {}
_MAX_CACHE = 50

def _cache_put(result: AnalysisResult, original_text: str) -> str:
    key = str(uuid.uuid4())
    if len(_cache) >= _MAX_CACHE:
        del _cache[next(iter(_cache))]
    _cache[key] = {"result": result.to_dict(), "original_text": original_text}
    return key

def _cache_get(key: str):
    entry = _cache.get(key) if isinstance(key, str) else None
    if not entry:
        return None, None
    return AnalysisResult.from_dict(entry["result"]), entry["original_text"]

# ── Upload tagging ───────────────────────────────────────────────────────────
ALLOWED_TEXT  = {".txt"}
ALLOWED_PDF   = {".pdf"}
ALLOWED_DOC   = {".doc", ".docx"}
ALLOWED_IMAGE = {".png", ".jpg", ".jpeg", ".webp", ".gif"}
ALL_ALLOWED   = ALLOWED_TEXT | ALLOWED_PDF | ALLOWED_DOC | ALLOWED_IMAGE

IMAGE_MIME = {".png": "image/png", ".jpg": "image/jpeg", ".jpeg": "image/jpeg",
              ".webp": "image/webp", ".gif": "image/gif"}

def _ext(fn: str) -> str:
    return os.path.splitext(fn.lower())[1]

def _tag_upload(filename: str, raw: bytes) -> str:
    """Turn an uploaded file into the tagged payload string the orchestrator reads."""
    ext = _ext(filename)
    if ext in ALLOWED_TEXT:
        return raw.decode("utf-8", errors="ignore")
    b64 = base64.b64encode(raw).decode("ascii")
    # ':' separates data and file name in the tag
    name = os.path.basename(filename).replace(":", "_")
    if ext in ALLOWED_IMAGE:
        return f"{IMAGE_PREFIX}data:{IMAGE_MIME[ext]};base64,{b64}"
    if ext in ALLOWED_PDF:
        return f"{PDF_PREFIX}{b64}:{name}"
    return f"{DOC_PREFIX}{b64}:{name}"

def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}

# ── Error mapping ────────────────────────────────────────────────────────────

def _status_for(error: ConsentAnalyzerError) -> int:
    if isinstance(error, (ValidationError, InvalidDecisionError, DocumentRejectedError)):
        return 400
    if isinstance(error, RemoteRateLimitedError):
        return 429
    if isinstance(error, RemoteQuotaExceededError):
        return 402
    if isinstance(error, RemoteError):
        return 502
    return 500

@app.errorhandler(ConsentAnalyzerError)
def handle_analyzer_error(e: ConsentAnalyzerError):
    return jsonify({"error": e.message}), _status_for(e)


# ── REST API ─────────────────────────────────────────────────────────────────

@app.route("/api/health", methods=["GET"])
def api_health():
    return jsonify({"status": "ok", "version": "1.0", "llm": llm_status()})


@app.route("/api/analyze", methods=["POST"])
def api_analyze():
    """
    Analyze a consent document and return structured JSON.

    Accepts:
      • application/json    → { "text": "..." } or { "payload": "IMAGE_DATA:..." }
      • multipart/form-data → file field or text field
    """
    raw = ""
    ct = request.content_type or ""

    if "application/json" in ct:
        body = _json_body()
        raw = body.get("payload") or body.get("text") or ""
    elif "multipart/form-data" in ct or "application/x-www-form-urlencoded" in ct:
        upload = request.files.get("file")
        if upload and upload.filename:
            ext = _ext(upload.filename)
            if ext not in ALL_ALLOWED:
                return jsonify({"error": f"Unsupported file type: {ext}"}), 415
            raw = _tag_upload(upload.filename, upload.read())
        else:
            raw = request.form.get("text", "")
    else:
        raw = request.get_data(as_text=True)

    if not isinstance(raw, str) or not raw.strip():
        return jsonify({"error": "No text provided."}), 400

    result = orchestrator.analyze(raw)
    payload = parse_payload(raw)
    original_text = "" if payload.is_binary else payload.data
    key = _cache_put(result, original_text)
    return jsonify({"key": key, "result": result.to_dict()}), 200


@app.route("/api/analyze-consent", methods=["POST"])
def api_analyze_consent():
    """Generative analysis backend: the remote end of RemoteAnalysisAdapter."""
    body = _json_body()
    try:
        result = run_consent_analysis(body)
    except DocumentRejectedError as e:
        return jsonify({"error": e.message, "validationInfo": e.validation_info}), 400
    except RemoteRateLimitedError as e:
        return jsonify({"error": e.message}), 429
    except RemoteQuotaExceededError as e:
        return jsonify({"error": e.message}), 402
    except ConsentAnalyzerError as e:
        app.logger.error("Error in analyze-consent: %s", e)
        return jsonify({"error": e.message}), 500
    return jsonify(result.to_dict()), 200


@app.route("/api/consent", methods=["POST"])
def api_consent():
    """
    Save a consent decision.

    JSON body: { "userId", "decision", "key" or "result", "termDecisions"?, "originalText"? }
    """
    body = _json_body()
    user_id = body.get("userId")
    if not user_id:
        return jsonify({"error": "Please sign in to save your decision."}), 401

    result, original_text = _cache_get(body.get("key", ""))
    if result is None:
        if not body.get("result"):
            return jsonify({"error": "No analysis found. Please analyze a document first."}), 404
        try:
            result = AnalysisResult.from_dict(body["result"])
        except (KeyError, TypeError, ValueError) as e:
            return jsonify({"error": f"Invalid analysis result: {e}"}), 400
        original_text = body.get("originalText", "")

    record = store.save_decision(
        user_id, result, body.get("decision", ""),
        original_text=original_text or "",
        term_decisions=body.get("termDecisions"),
    )
    return jsonify({
        "record": record.to_dict(),
        "stats":  store.stats_for(user_id).to_dict(),
    }), 201


@app.route("/api/users/<user_id>/stats", methods=["GET"])
def api_user_stats(user_id):
    return jsonify(store.stats_for(user_id).to_dict())


@app.route("/api/users/<user_id>/analyses", methods=["GET"])
def api_user_analyses(user_id):
    return jsonify([r.to_dict() for r in store.records_for(user_id)])


@app.route("/api/stats", methods=["GET"])
def api_platform_stats():
    return jsonify(store.platform_stats())


# ── Export routes ────────────────────────────────────────────────────────────

EXPORTS = {
    "pdf":  ("application/pdf", "risk_report.pdf"),
    "word": ("application/vnd.openxmlformats-officedocument.wordprocessingml.document", "risk_report.docx"),
    "csv":  ("text/csv", "risk_data.csv"),
    "json": ("application/json", "risk_report.json"),
}

@app.route("/api/export/<fmt>")
def api_export(fmt):
    if fmt not in EXPORTS:
        return jsonify({"error": f"Unknown export format: {fmt}"}), 404
    result, original_text = _cache_get(request.args.get("key", ""))
    if not result:
        return jsonify({"error": "No analysis found. Please analyze a document first."}), 404

    import exporters
    if fmt == "pdf":
        data = exporters.export_pdf(result)
    elif fmt == "word":
        data = exporters.export_word(result)
    elif fmt == "csv":
        data = exporters.export_csv(result)
    else:
        data = exporters.export_json(result, original_text)

    mimetype, suffix = EXPORTS[fmt]
    return send_file(io.BytesIO(data), mimetype=mimetype, as_attachment=True,
                     download_name=exporters.export_filename(result.document_title, suffix))


if __name__ == "__main__":
    app.run(debug=True, port=int(os.environ.get("PORT", "5050")))
