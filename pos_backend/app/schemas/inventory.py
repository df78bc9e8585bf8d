from datetime import datetime

from pydantic import BaseModel


class InventoryRead(BaseModel):
    store_id: int
    product_id: int

    quantity: int  # READ ONLY, written only by the stock ledger
    updated_at: datetime

    class Config:
        from_attributes = True
