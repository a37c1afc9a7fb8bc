from flask import Flask, request, render_template, send_file, flash, jsonify
import io
import os
import logging
from calculator.core import init_locale
from calculator.controller import TipCalculatorController, TIP_PERCENT_MAX, TIP_PERCENT_MIN, TIP_PERCENT_STEP
from calculator.table import bills_to_tips, read_bills, tip_table, to_excel_bytes

logger = logging.getLogger(__name__)

try:
    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
except Exception:
    sentry_sdk = None


app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "dev-secret-for-local-testing-only")

# Max upload size for batch files: default 16 MiB, can be overridden via env var MAX_CONTENT_LENGTH
app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("MAX_CONTENT_LENGTH", 16 * 1024 * 1024))

# Initial slider position for a fresh screen
DEFAULT_TIP_PERCENT = float(os.environ.get("TIP_DEFAULT_PERCENT", 15))

# Optional Basic Auth: set BASIC_AUTH_USERNAME and BASIC_AUTH_PASSWORD in env to enable
BASIC_AUTH_USERNAME = os.environ.get("BASIC_AUTH_USERNAME")
BASIC_AUTH_PASSWORD = os.environ.get("BASIC_AUTH_PASSWORD")

# Initialize Sentry if DSN provided
SENTRY_DSN = os.environ.get("SENTRY_DSN")
if SENTRY_DSN and sentry_sdk is not None:
    sentry_sdk.init(dsn=SENTRY_DSN, integrations=[FlaskIntegration()])

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Format tips with the currency of the locale the server runs under
init_locale()


def _check_basic_auth():
    """Return True if auth is not enabled or if provided credentials match env vars."""
    if not (BASIC_AUTH_USERNAME and BASIC_AUTH_PASSWORD):
        return True
    auth = request.authorization
    if not auth:
        return False
    return auth.username == BASIC_AUTH_USERNAME and auth.password == BASIC_AUTH_PASSWORD


@app.before_request
def require_basic_auth():
    # Protect all routes when BASIC_AUTH_* are set
    if not _check_basic_auth():
        return "Unauthorized", 401, {"WWW-Authenticate": 'Basic realm="Login Required"'}


ALLOWED_EXTENSIONS = {"xlsx", "xls", "csv"}


def _allowed_file(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def _is_on(value) -> bool:
    return str(value).strip().lower() in ("on", "true", "1", "yes")


def _controller_from(values) -> TipCalculatorController:
    """Build a controller and replay the screen inputs found in `values` onto it."""
    controller = TipCalculatorController(tip_percent=DEFAULT_TIP_PERCENT)
    controller.set_amount_input(values.get("amount", ""))
    tip_percent = values.get("tip_percent", "").strip()
    if tip_percent:
        try:
            controller.set_tip_percent(float(tip_percent))
        except ValueError:
            logger.warning(f"Ignoring tip percent {tip_percent!r}")
    controller.set_round_up(_is_on(values.get("round_up", "")))
    return controller


def _render_screen(controller: TipCalculatorController, status: int = 200, **extra):
    return render_template(
        "index.html",
        state=controller.state,
        tip_percent_label=controller.tip_percent_label,
        tip_percent_min=int(TIP_PERCENT_MIN),
        tip_percent_max=int(TIP_PERCENT_MAX),
        tip_percent_step=int(TIP_PERCENT_STEP),
        **extra,
    ), status


@app.errorhandler(413)
def request_entity_too_large(error):
    controller = TipCalculatorController(tip_percent=DEFAULT_TIP_PERCENT)
    return _render_screen(
        controller,
        413,
        error="File too large. Max size is {} bytes.".format(app.config["MAX_CONTENT_LENGTH"]),
    )


@app.route("/health", methods=["GET"])
def health():
    return jsonify(status="ok"), 200


@app.route("/ready", methods=["GET"])
def ready():
    # Basic readiness check: can compute a tip table and write it to an in-memory workbook
    try:
        to_excel_bytes(tip_table("1"), "Tips")
        return jsonify(ready=True), 200
    except Exception:
        logger.exception("Readiness check failed")
        return jsonify(ready=False), 500


@app.route("/", methods=["GET", "POST"])
def index():
    values = request.form if request.method == "POST" else request.args
    controller = _controller_from(values)
    return _render_screen(controller)


@app.route("/api/tip", methods=["GET"])
def api_tip():
    state = _controller_from(request.args).state
    return jsonify(
        amount=state.amount_input,
        tip_percent=state.tip_percent,
        round_up=state.round_up,
        tip=state.tip,
    ), 200


@app.route("/table.xlsx", methods=["GET"])
def table_export():
    state = _controller_from(request.args).state
    df = tip_table(state.amount_input, state.round_up)
    logger.info(f"Exporting tip table for bill {state.amount_input!r}")
    return send_file(
        io.BytesIO(to_excel_bytes(df, "Tip Table")),
        as_attachment=True,
        download_name="Tip_Table.xlsx",
        mimetype=XLSX_MIMETYPE,
    )


@app.route("/batch", methods=["POST"])
def batch():
    controller = _controller_from(request.form)
    uploaded = request.files.get("file")
    if uploaded is None or uploaded.filename == "":
        flash("Please upload a file of bills.")
        return _render_screen(controller, 400)
    if not _allowed_file(uploaded.filename):
        flash("Unsupported file type. Please upload .xlsx, .xls, or .csv files.")
        return _render_screen(controller, 400)

    state = controller.state
    amount_col = request.form.get("amount_col", "").strip() or None
    try:
        df = read_bills(uploaded.read(), uploaded.filename)
        result = bills_to_tips(df, state.tip_percent, state.round_up, amount_col=amount_col)
    except (KeyError, ValueError) as e:
        # Capture exception in Sentry (if configured)
        if sentry_sdk is not None:
            sentry_sdk.capture_exception(e)
        logger.error(f"Could not process {uploaded.filename}: {e}")
        flash(f"Error processing file: {e}")
        return _render_screen(controller, 400)

    logger.info(f"Batch file {uploaded.filename} processed: {len(result)} bills")
    return send_file(
        io.BytesIO(to_excel_bytes(result, "Tips")),
        as_attachment=True,
        download_name="Tips_OUTPUT.xlsx",
        mimetype=XLSX_MIMETYPE,
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    # Use PORT environment variable for cloud servers; default to 5000 for local dev
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_ENV") == "development"
    app.run(host="0.0.0.0", port=port, debug=debug)
