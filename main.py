from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from taponce import OrderProcessor
from taponce.errors import NotFoundError, TapOnceError, ValidationError
from taponce.models import to_decimal
from taponce.output import OutputBuilder
import os
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

output = OutputBuilder()


def _json_body() -> dict:
    data = request.get_json(force=True, silent=True)
    if not data or not isinstance(data, dict):
        raise ValidationError("No input data provided")
    return data


def _optional_json_body() -> dict:
    """Body for endpoints where every field is optional."""
    data = request.get_json(force=True, silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _int_arg(name: str, default=None):
    value = request.args.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer, got: {value!r}") from None


def create_app(processor: OrderProcessor = None) -> Flask:
    app = Flask(__name__)

    # Enable CORS for all routes (admin, agent and customer dashboards call the API)
    CORS(app)

    processor = processor if processor is not None else OrderProcessor()
    app.config["PROCESSOR"] = processor

    @app.errorhandler(TapOnceError)
    def handle_engine_error(e):
        if isinstance(e, NotFoundError):
            code = 404
        elif isinstance(e, ValidationError) or type(e) is TapOnceError:
            code = 400
        else:
            code = 409
        logger.error(f"{type(e).__name__}: {str(e)}")
        return jsonify({"error": str(e), "status": e.status}), code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return e
        logger.error(f"Processing error: {str(e)}", exc_info=True)
        return jsonify({"error": "An unexpected error occurred", "status": "failed"}), 500

    @app.route("/api", methods=["GET"])
    def api_info():
        """API information endpoint"""
        return jsonify({
            "status": "ok",
            "message": "TapOnce Order Economics API",
            "version": "1.0",
            "endpoints": {
                "calculate_commission": "/commission/calculate [POST]",
                "calculate_override": "/commission/override [POST]",
                "orders": "/orders [GET, POST]",
                "kanban": "/orders/kanban [GET]",
                "transition": "/orders/<id>/status [POST]",
                "approve_below_msp": "/orders/<id>/approve-below-msp [POST]",
                "designs": "/catalog/designs [GET, POST]",
                "design_status": "/catalog/designs/<id>/status [PUT]",
                "agents": "/agents [GET, POST]",
                "agent_status": "/agents/<id>/status [PUT]",
                "ledger": "/agents/<id>/ledger [GET]",
                "payouts": "/agents/<id>/payouts [GET, POST]",
                "liabilities": "/finance/liabilities [GET]",
                "health": "/health [GET]"
            }
        }), 200

    @app.route("/health", methods=["GET"])
    def health():
        """Health check for monitoring"""
        return jsonify({"status": "healthy"}), 200

    # -------------------------------------------------------------------------
    # Commission calculator
    # -------------------------------------------------------------------------

    @app.route("/commission/calculate", methods=["POST"])
    def calculate_commission():
        data = _json_body()
        sale_price = to_decimal(data.get("sale_price"), "sale_price")
        msp = to_decimal(data.get("msp"), "msp")
        base = data.get("base_commission")
        base = to_decimal(base, "base_commission") if base is not None else None

        result = processor.commission_calculator.calculate(sale_price, msp, base)
        return jsonify(output.commission(result, sale_price, msp)), 200

    @app.route("/commission/override", methods=["POST"])
    def calculate_override():
        data = _json_body()
        sale_price = to_decimal(data.get("sale_price"), "sale_price")
        rate = data.get("rate")
        rate = to_decimal(rate, "rate") if rate is not None else processor.settings.override_rate

        amount = processor.commission_calculator.calculate_override(sale_price, rate)
        return jsonify(output.override(sale_price, amount, rate)), 200

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    @app.route("/catalog/designs", methods=["POST"])
    def create_design():
        design = processor.add_card_design(_json_body())
        logger.info(f"Card design created: {design.name}")
        return jsonify(output.design(design)), 201

    @app.route("/catalog/designs", methods=["GET"])
    def list_designs():
        designs = processor.list_card_designs(
            search=request.args.get("search"),
            status=request.args.get("status"),
        )
        return jsonify({"designs": [output.design(d) for d in designs], "total": len(designs)}), 200

    @app.route("/catalog/designs/<design_id>/status", methods=["PUT"])
    def set_design_status(design_id):
        data = _json_body()
        design = processor.set_design_status(design_id, data.get("status"))
        return jsonify(output.design(design)), 200

    @app.route("/catalog/designs/<design_id>/msp/<agent_id>", methods=["PUT"])
    def set_agent_msp(design_id, agent_id):
        data = _json_body()
        msp = processor.set_agent_msp(agent_id, design_id, data.get("msp_amount", data.get("mspAmount")))
        return jsonify({
            "agent_id": msp.agent_id,
            "card_design_id": msp.card_design_id,
            "msp_amount": float(msp.msp_amount),
        }), 200

    @app.route("/catalog/designs/<design_id>/msp/<agent_id>", methods=["DELETE"])
    def clear_agent_msp(design_id, agent_id):
        cleared = processor.clear_agent_msp(agent_id, design_id)
        return jsonify({"cleared": cleared}), 200

    # -------------------------------------------------------------------------
    # Agents
    # -------------------------------------------------------------------------

    @app.route("/agents", methods=["POST"])
    def create_agent():
        agent = processor.register_agent(_json_body())
        return jsonify(output.agent(agent)), 201

    @app.route("/agents", methods=["GET"])
    def list_agents():
        agents = processor.list_agents(
            search=request.args.get("search"),
            status=request.args.get("status"),
        )
        return jsonify({"agents": [output.agent(a) for a in agents], "total": len(agents)}), 200

    @app.route("/agents/<agent_id>/status", methods=["PUT"])
    def set_agent_status(agent_id):
        data = _json_body()
        agent = processor.set_agent_status(agent_id, data.get("status"))
        return jsonify(output.agent(agent)), 200

    @app.route("/agents/<agent_id>/ledger", methods=["GET"])
    def agent_ledger(agent_id):
        return jsonify(output.ledger(processor.ledger_snapshot(agent_id))), 200

    @app.route("/agents/<agent_id>/catalog", methods=["GET"])
    def agent_catalog(agent_id):
        designs = [output.design(d, msp) for d, msp in processor.agent_catalog(agent_id)]
        return jsonify({"designs": designs, "total": len(designs)}), 200

    @app.route("/agents/<agent_id>/sub-agents", methods=["GET"])
    def sub_agents(agent_id):
        return jsonify({"sub_agents": [output.sub_agent(s) for s in processor.sub_agents(agent_id)]}), 200

    @app.route("/agents/<agent_id>/payouts", methods=["POST"])
    def record_payout(agent_id):
        data = _json_body()
        payout = processor.record_payout(
            agent_id,
            data.get("amount"),
            data.get("payment_method", data.get("paymentMethod", "upi")),
            data.get("admin_notes", data.get("adminNotes")),
        )
        return jsonify(output.payout(payout)), 201

    @app.route("/agents/<agent_id>/payouts", methods=["GET"])
    def list_payouts(agent_id):
        return jsonify({"payouts": [output.payout(p) for p in processor.payouts_for(agent_id)]}), 200

    @app.route("/finance/liabilities", methods=["GET"])
    def liabilities():
        return jsonify(output.liabilities(processor.commission_liabilities())), 200

    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------

    @app.route("/orders", methods=["POST"])
    def create_order():
        order = processor.create_order(_json_body())
        return jsonify(output.order(order)), 201

    @app.route("/orders", methods=["GET"])
    def list_orders():
        page = _int_arg("page", 1)
        limit = min(_int_arg("limit", processor.settings.default_page_size), processor.settings.max_page_size)
        orders, total = processor.list_orders(
            status=request.args.get("status"),
            agent_id=request.args.get("agent_id"),
            search=request.args.get("search"),
            page=page,
            limit=limit,
        )
        return jsonify(output.order_list(orders, total, page, limit)), 200

    @app.route("/orders/kanban", methods=["GET"])
    def kanban():
        return jsonify(output.kanban(processor.kanban_board())), 200

    @app.route("/orders/<order_id>", methods=["GET"])
    def get_order(order_id):
        return jsonify(output.order(processor.get_order(order_id))), 200

    @app.route("/orders/<order_id>/status", methods=["POST"])
    def transition_order(order_id):
        data = _json_body()
        if "status" not in data:
            raise ValidationError("status is required")
        order = processor.transition_order(order_id, data["status"], data)
        return jsonify(output.order(order)), 200

    @app.route("/orders/<order_id>/approve-below-msp", methods=["POST"])
    def approve_below_msp(order_id):
        data = _optional_json_body()
        order = processor.approve_below_msp(order_id, data)
        return jsonify(output.order(order)), 200

    return app


app = create_app()


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=False)
