"""
DELIVERIES App - Errors raised by the delivery engine.

Each error carries the HTTP status and machine-readable code the API
answers with.
"""


class DeliveryError(Exception):
    """Base class for recoverable delivery engine errors."""

    code = 'delivery_error'
    status_code = 400


class InvalidTransition(DeliveryError):
    """Event not allowed from the delivery's current status."""

    code = 'invalid_transition'
    status_code = 409

    def __init__(self, event: str, status: str):
        self.event = str(event)
        self.status = str(status)
        super().__init__(f"Cannot apply '{self.event}' to a delivery in status '{self.status}'")


class AlreadyTaken(DeliveryError):
    """The delivery left 'pending' before the rider could accept it."""

    code = 'already_taken'
    status_code = 409

    def __init__(self, delivery_id, status: str):
        self.delivery_id = str(delivery_id)
        self.status = str(status)
        super().__init__(f"Delivery {self.delivery_id} is no longer available (status: {self.status})")


class RiderBusy(DeliveryError):
    """The rider already holds an active delivery."""

    code = 'rider_busy'
    status_code = 409

    def __init__(self, rider_id: str, active_delivery_id):
        self.rider_id = str(rider_id)
        self.active_delivery_id = str(active_delivery_id)
        super().__init__(
            f"Rider {self.rider_id} must finish delivery {self.active_delivery_id} first"
        )


class DeliveryNotFound(DeliveryError):
    code = 'not_found'
    status_code = 404

    def __init__(self, delivery_id):
        self.delivery_id = str(delivery_id)
        super().__init__(f"Delivery {self.delivery_id} not found")


class PersistenceFailure(DeliveryError):
    """
    The write did not reach the database.

    Callers must re-read the delivery before retrying.
    """

    code = 'persistence_failure'
    status_code = 503
