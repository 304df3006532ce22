"""
Composer Errors

Иерархия ошибок для сборки транзакций ликвидности.
Каждая ошибка несёт контекст: какая операция и какое поле запроса.
"""

from typing import Optional


class ComposerError(Exception):
    """Базовая ошибка сборки транзакции."""

    def __init__(self, message: str, operation: str = None, field: str = None):
        self.message = message
        self.operation = operation
        self.field = field
        super().__init__(message)

    def __str__(self):
        prefix = f"[{self.operation}] " if self.operation else ""
        suffix = f" (field: {self.field})" if self.field else ""
        return f"{prefix}{self.message}{suffix}"

    def to_response(self) -> dict:
        """Ответ в формате сервиса: {success: False, error, ...}."""
        return {
            "success": False,
            "error": str(self),
            "error_type": type(self).__name__,
            "operation": self.operation,
            "field": self.field,
        }


class InvalidInputError(ComposerError, ValueError):
    """Некорректные числовые данные: цена <= 0, процент вне диапазона, отрицательная сумма."""
    pass


class InvalidRangeError(InvalidInputError):
    """Диапазон цен схлопнулся: lower_tick >= upper_tick."""

    def __init__(self, lower_tick: int, upper_tick: int, operation: str = None):
        self.lower_tick = lower_tick
        self.upper_tick = upper_tick
        super().__init__(
            f"Invalid tick range: lower_tick {lower_tick} must be below upper_tick {upper_tick}",
            operation=operation,
            field="price_range",
        )


class MissingFundingError(ComposerError):
    """Ненулевая сумма не-нативного актива без объектов монет."""

    def __init__(self, message: str, side: Optional[str] = None, operation: str = None, field: str = None):
        self.side = side
        super().__init__(message, operation=operation, field=field)


class UpstreamLookupFailedError(ComposerError):
    """Lookup адаптер не смог получить пул или позицию."""

    def __init__(self, message: str, object_id: Optional[str] = None, operation: str = None, field: str = None):
        self.object_id = object_id
        super().__init__(message, operation=operation, field=field)


class ObjectNotFoundError(UpstreamLookupFailedError):
    """Объект не существует в сети (или удалён)."""
    pass
