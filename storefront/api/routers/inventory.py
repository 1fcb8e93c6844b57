# storefront/api/routers/inventory.py
from fastapi import APIRouter, Depends

from storefront.api.deps import get_inventory_service
from storefront.domain.schemas import ReserveIn, StockAdjustIn, StockSetIn
from storefront.services.inventory_service import InventoryService, ReserveLine

router = APIRouter(prefix="/inventory", tags=["inventory"])


def _lines(payload: ReserveIn):
    return [ReserveLine(variant_id=l.variant_id, quantity=l.quantity) for l in payload.lines]


@router.get("/{variant_id}")
def get_stock(variant_id: int, svc: InventoryService = Depends(get_inventory_service)):
    return {"variant_id": variant_id, "stock": svc.get_stock(variant_id)}


@router.put("/{variant_id}")
def set_stock(variant_id: int, payload: StockSetIn, svc: InventoryService = Depends(get_inventory_service)):
    return {"variant_id": variant_id, "stock": svc.set_stock(variant_id, payload.stock)}


@router.post("/{variant_id}/adjust")
def adjust_stock(variant_id: int, payload: StockAdjustIn, svc: InventoryService = Depends(get_inventory_service)):
    return {"variant_id": variant_id, "stock": svc.adjust_stock(variant_id, payload.delta)}


@router.post("/reserve")
def reserve(payload: ReserveIn, svc: InventoryService = Depends(get_inventory_service)):
    result = svc.reserve(_lines(payload))
    return {"reserved": [{"variant_id": l.variant_id, "quantity": l.quantity} for l in result.reserved]}


@router.post("/release")
def release(payload: ReserveIn, svc: InventoryService = Depends(get_inventory_service)):
    released = svc.release(_lines(payload))
    return {"released": [{"variant_id": l.variant_id, "quantity": l.quantity} for l in released]}
