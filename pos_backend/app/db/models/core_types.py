import enum

class OrderStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    cancelled = "cancelled"

class RequisitionStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    completed = "completed"

class MovementType(str, enum.Enum):
    sale = "SALE"
    sale_return = "RETURN"
    transfer_out = "TRANSFER_OUT"
    transfer_in = "TRANSFER_IN"

class RequisitionMovementPolicy(str, enum.Enum):
    on_create = "on_create"
    on_approval = "on_approval"
