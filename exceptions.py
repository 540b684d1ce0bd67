"""
Общие исключения сервиса.

- LLMError         : Ollama недоступна, таймаут, ответ не 200 или кривой конверт
- LLMParseError    : ответ модели не удалось разобрать как JSON-объект
- PersistenceError : ошибка БД (транзакция уже откатена)
"""


class LLMError(RuntimeError):
    """Ошибка вызова локальной LLM."""


class LLMParseError(LLMError):
    """Ответ модели не является JSON-объектом."""


class PersistenceError(RuntimeError):
    """Ошибка хранилища комментариев."""
