"""
Иерархия ошибок Agent Sentinel.

Каждое нарушение предусловия — отдельное именованное исключение,
вызывающий код различает их по типу, а HTTP слой — по `status_code`.
"""


class SentinelError(Exception):
    """Базовая ошибка реестра и очереди заявок."""

    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class InvalidInput(SentinelError):
    """Пустой/нулевой адрес, пустое обязательное поле, отрицательное число."""
    status_code = 400


class InsufficientPayment(SentinelError):
    """Депозит меньше минимальной комиссии для цели без освобождения."""
    status_code = 402


class NotFound(SentinelError):
    """Неизвестный id или id вне допустимого диапазона."""
    status_code = 404


class InvalidState(SentinelError):
    """Операция недопустима для текущего статуса."""
    status_code = 409


class Unauthorized(SentinelError):
    """У вызывающего нет нужной роли."""
    status_code = 403


class TimeoutNotReached(SentinelError):
    """Окно возврата ещё не истекло."""
    status_code = 425


class TransferFailed(SentinelError):
    """Исходящий платёж не удалось доставить."""
    status_code = 502


class NoBalance(SentinelError):
    """Вывод средств при нулевом балансе хранения."""
    status_code = 409


class ReentrantCall(SentinelError):
    """Повторный вход в компонент во время выполняющейся операции."""
    status_code = 409


class Paused(SentinelError):
    """Компонент на паузе."""
    status_code = 423


class CooldownActive(SentinelError):
    """Слишком частая публикация отчёта по одной цели."""
    status_code = 429


class OwnershipRenounceDisabled(SentinelError):
    """Отказ от владения отключён."""
    status_code = 403


class StateOutOfSync(SentinelError):
    """Откат не удалось записать: хранилище расходится с памятью до load()."""
    status_code = 503
