import os
from flask import Flask, request, jsonify

from distress_lines import (
    MAX_PHRASE_LEN,
    GenerationParameters,
    generate_line,
    make_break_example,
    sanitize,
)
from distress_lexicon import load_lexicon
from usage_counter import InvalidEvent, RateLimited, UsageCounter

app = Flask(__name__)

# Optional: point DISTRESS_LINES_LEXICON at a lexicon JSON file to replace the built-in banks
LEXICON_PATH = os.environ.get("DISTRESS_LINES_LEXICON")
app.config["LEXICON"] = load_lexicon(LEXICON_PATH)
app.config["USAGE_COUNTER"] = UsageCounter()

if app.config["LEXICON"] is None:
    app.logger.warning("Lexicon could not be loaded from %s", LEXICON_PATH)


@app.get("/health")
def health():
    return {"ok": True, "lexicon": app.config["LEXICON"] is not None}


@app.post("/generate")
def generate():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Expected a JSON object"}), 400

    lexicon = app.config["LEXICON"]
    if lexicon is None:
        return jsonify({"error": "Lexicon not loaded"}), 503

    line = generate_line(GenerationParameters.from_mapping(data), lexicon)
    return jsonify({"line": line})


@app.get("/break-example")
def break_example():
    phrase = sanitize(request.args.get("phrase", ""), MAX_PHRASE_LEN)
    intensity = request.args.get("intensity", "mid")
    rule = request.args.get("rule", "split")
    return jsonify({"example": make_break_example(phrase, intensity, rule)})


@app.post("/event")
def event():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return "bad request", 400

    client = request.headers.get("CF-Connecting-IP") or request.remote_addr or "unknown"
    try:
        app.config["USAGE_COUNTER"].record_event(data.get("event"), client)
    except InvalidEvent:
        return "bad request", 400
    except RateLimited:
        app.logger.info("Rate limited client %s", client)
        return "rate limited", 429
    return "ok", 200


@app.get("/stats")
def stats():
    return jsonify(app.config["USAGE_COUNTER"].stats_for_day())


if __name__ == "__main__":
    port = int(os.environ.get("PORT", "8000"))
    app.run(host="0.0.0.0", port=port, debug=True)
