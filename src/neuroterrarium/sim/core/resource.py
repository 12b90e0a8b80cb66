from __future__ import annotations

from dataclasses import dataclass

from pygame.math import Vector2


@dataclass(slots=True)
class Resource:
    id: int
    position: Vector2
    quantity: float

    def is_depleted(self) -> bool:
        return self.quantity <= 0.0

    def take(self, amount: float) -> float:
        taken = max(0.0, min(amount, self.quantity))
        self.quantity -= taken
        return taken
