# -*- coding: utf-8 -*-
"""Garden error taxonomy.

Each error carries the HTTP status the web layer answers with and a short
machine-readable code. Engine errors never leave a partial mutation behind.
"""

from __future__ import annotations

from typing import Any, Dict


class GardenError(Exception):
    status_code = 500
    code = "garden_error"
    default_message = "Garden operation failed"

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "error": self.code}


# ----------------- 400: malformed input -----------------


class ValidationError(GardenError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request"


class InvalidPlantTypeError(ValidationError):
    code = "invalid_activity"
    default_message = "Unknown plant type"


class InvalidPayloadError(ValidationError):
    code = "invalid_payload"
    default_message = "Missing required garden data"


# ----------------- 404 -----------------


class NotFoundError(GardenError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class CellNotFoundError(NotFoundError):
    code = "cell_not_found"
    default_message = "Cell not found"


class GardenNotFoundError(NotFoundError):
    code = "garden_not_found"
    default_message = "Garden not initialized"


class UserNotFoundError(NotFoundError):
    code = "user_not_found"
    default_message = "User not found"


# ----------------- 400: rule conflicts -----------------


class ConflictError(GardenError):
    status_code = 400
    code = "conflict"
    default_message = "Action not allowed in the current garden state"


class CellOccupiedError(ConflictError):
    code = "cell_occupied"
    default_message = "Cell already occupied"


class OutOfStockError(ConflictError):
    code = "out_of_stock"
    default_message = "Not enough plants in inventory"


class NotReadyError(ConflictError):
    code = "not_ready"
    default_message = "Plant not ready to harvest"


class NoPlantError(ConflictError):
    code = "no_plant"
    default_message = "No plant in this cell"


class NoPlantToWaterError(ConflictError):
    code = "no_plant_to_water"
    default_message = "No plant to water"


class StaleGardenError(GardenError):
    status_code = 409
    code = "stale_garden"
    default_message = "Garden was modified concurrently; reload and retry"


# ----------------- 401 / 500 -----------------


class AuthError(GardenError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required"


class InternalError(GardenError):
    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"


class StoreError(InternalError):
    code = "store_error"
    default_message = "Failed to access garden storage"
