"""Cola de ventas offline.

Cuando la base no responde, la venta ya calculada (y sus tickets) se guarda
aquí. `flush()` la aplica después con la misma transacción de siempre y
vuelve a validar que la caja de ese día siga abierta: si se cerró mientras
tanto, la venta pasa a `rejected`; nunca se reabre una caja.
"""
import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from app.core.errors import PersistenceError, RegisterClosedError, ValidationError
from app.services.sale_builder import CartLine, SaleDraft
from app.utils.atomic_file import read_json, write_json_atomic

logger = logging.getLogger(__name__)


@dataclass
class FlushResult:
    applied: List[str] = field(default_factory=list)
    rejected: List[Dict] = field(default_factory=list)
    remaining: int = 0
    error: Optional[str] = None


def _line_to_dict(line: CartLine) -> Dict:
    return {
        "product_id": line.product_id,
        "name": line.name,
        "unit_price": str(line.unit_price),
        "quantity": line.quantity,
        "payment_method": line.payment_method,
    }


def _line_from_dict(d: Dict) -> CartLine:
    return CartLine(
        product_id=d.get("product_id"),
        name=d["name"],
        unit_price=Decimal(d["unit_price"]),
        quantity=int(d["quantity"]),
        payment_method=d["payment_method"],
    )


class OfflineQueue:
    def __init__(self, path: str, max_ops: int = 500, soft_ops: int = 400,
                 soft_hours: int = 36, max_hours: int = 48,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.path = path
        self.max_ops = max_ops
        self.soft_ops = soft_ops
        self.soft_hours = soft_hours
        self.max_hours = max_hours
        self._clock = clock
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, List[Dict]]:
        data = read_json(self.path, default=None) or {}
        return {"pending": list(data.get("pending") or []), "rejected": list(data.get("rejected") or [])}

    def _save(self, data: Dict) -> None:
        try:
            write_json_atomic(self.path, data)
        except OSError as exc:
            raise PersistenceError("No se pudo guardar la cola offline") from exc

    def enqueue(self, draft: SaleDraft) -> SaleDraft:
        """Guarda la venta; asigna `client_ref` si no trae para que el replay sea idempotente."""
        if not draft.client_ref:
            draft = replace(draft, client_ref=f"offline-{uuid.uuid4().hex}")
        with self._lock:
            data = self._load()
            if len(data["pending"]) >= self.max_ops:
                raise PersistenceError("Cola offline llena", pending=len(data["pending"]))
            data["pending"].append({
                "client_ref": draft.client_ref,
                "operator_id": draft.operator_id,
                "seller_name": draft.seller_name,
                "business_day": draft.business_day,
                "created_at": draft.created_at.isoformat(),
                "queued_at": self._clock().isoformat(),
                "lines": [_line_to_dict(line) for line in draft.lines],
            })
            self._save(data)
        logger.warning("sale queued offline ref=%s operator=%s day=%s",
                       draft.client_ref, draft.operator_id, draft.business_day)
        return draft

    def pending(self) -> List[Dict]:
        with self._lock:
            return self._load()["pending"]

    def rejected(self) -> List[Dict]:
        with self._lock:
            return self._load()["rejected"]

    def status(self) -> Dict:
        with self._lock:
            data = self._load()
        pending = data["pending"]
        age_hours = 0.0
        if pending:
            oldest = datetime.fromisoformat(pending[0]["queued_at"])
            age_hours = round((self._clock() - oldest).total_seconds() / 3600, 2)
        return {
            "pending": len(pending),
            "rejected": len(data["rejected"]),
            "oldest_age_hours": age_hours,
            "soft_exceeded": len(pending) >= self.soft_ops or age_hours >= self.soft_hours,
            "hard_exceeded": len(pending) >= self.max_ops or age_hours >= self.max_hours,
            "soft": {"ops": self.soft_ops, "hours": self.soft_hours},
            "hard": {"ops": self.max_ops, "hours": self.max_hours},
        }

    def flush(self, commit: Callable[[List[CartLine], str, datetime, str], object]) -> FlushResult:
        """Aplica en orden; se detiene en el primer PersistenceError (la base sigue caída)."""
        result = FlushResult()
        with self._lock:
            data = self._load()
            still: List[Dict] = []
            items = data["pending"]
            for idx, item in enumerate(items):
                try:
                    lines = [_line_from_dict(d) for d in item["lines"]]
                    commit(lines, item["operator_id"], datetime.fromisoformat(item["created_at"]),
                           item["client_ref"])
                except (RegisterClosedError, ValidationError) as exc:
                    rej = dict(item, reason=getattr(exc, "code", "REJECTED"), message=exc.message)
                    data["rejected"].append(rej)
                    result.rejected.append(rej)
                    logger.warning("queued sale rejected ref=%s reason=%s", item["client_ref"], rej["reason"])
                except PersistenceError as exc:
                    still = items[idx:]
                    result.error = exc.message
                    break
                else:
                    result.applied.append(item["client_ref"])
            data["pending"] = still
            result.remaining = len(still)
            self._save(data)
        logger.info("offline flush applied=%s rejected=%s remaining=%s",
                    len(result.applied), len(result.rejected), result.remaining)
        return result

    def clear_rejected(self) -> int:
        with self._lock:
            data = self._load()
            n = len(data["rejected"])
            data["rejected"] = []
            self._save(data)
        return n
