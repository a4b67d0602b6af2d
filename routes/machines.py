"""
Machine routes.

Handles:
- GET    /api/machines               - list (?active=true|false)
- POST   /api/machines               - add (optionally with assigned_reel_id)
- GET    /api/machines/<id>          - one machine
- PATCH  /api/machines/<id>          - edit; assigned_reel_id mounts/unmounts a reel
- DELETE /api/machines/<id>          - remove, freeing its reel
- POST   /api/machines/<id>/toggle   - start/stop

Assignment goes through the coordinator so reel in-machine flags follow.
"""

from flask import Blueprint, current_app, request

from core.exceptions import ValidationError
from logging_config import get_logger


logger = get_logger(__name__)

machines_bp = Blueprint("machines", __name__, url_prefix="/api/machines")

_ASSIGN_KEY = "assigned_reel_id"


def _services():
    return current_app.config["INVENTORY_SERVICES"]


def _parse_active(value):
    if value is None:
        return None
    text = value.strip().lower()
    if text in ("1", "true", "yes"):
        return True
    if text in ("0", "false", "no"):
        return False
    raise ValidationError("active", f"expected true or false, got {value!r}")


@machines_bp.route("", methods=["GET"])
def list_machines():
    active = _parse_active(request.args.get("active"))
    machines = _services().machines.list(active=active)
    return {"machines": [m.to_dict() for m in machines], "count": len(machines)}


@machines_bp.route("", methods=["POST"])
def create_machine():
    data = request.get_json(silent=True) or {}
    services = _services()

    reel_id = data.pop(_ASSIGN_KEY, None) or None
    machine = services.machines.create(data)

    if reel_id:
        try:
            machine = services.coordinator.assign_machine(machine.id, reel_id)
        except Exception:
            # Do not leave a half-created machine behind
            services.machines.remove(machine.id)
            raise

    return machine.to_dict(), 201


@machines_bp.route("/<machine_id>", methods=["GET"])
def get_machine(machine_id: str):
    return _services().machines.get(machine_id).to_dict()


@machines_bp.route("/<machine_id>", methods=["PATCH"])
def update_machine(machine_id: str):
    data = request.get_json(silent=True) or {}
    services = _services()

    assign = _ASSIGN_KEY in data
    reel_id = data.pop(_ASSIGN_KEY, None) or None

    machine = services.machines.update(machine_id, data) if data else services.machines.get(machine_id)
    if assign and reel_id != machine.assigned_reel_id:
        machine = services.coordinator.assign_machine(machine_id, reel_id)

    return machine.to_dict()


@machines_bp.route("/<machine_id>", methods=["DELETE"])
def delete_machine(machine_id: str):
    _services().coordinator.remove_machine(machine_id)
    return "", 204


@machines_bp.route("/<machine_id>/toggle", methods=["POST"])
def toggle_machine(machine_id: str):
    return _services().machines.toggle_active(machine_id).to_dict()
