import logging
import sys


def setup_logging(verbosity: int = 0) -> None:
    level = logging.INFO
    if verbosity >= 1:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class _RequestAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):  # noqa: ANN001
        return f"[{self.extra['request']}] {msg}", kwargs


def get_request_logger(name: str, request) -> logging.LoggerAdapter:  # noqa: ANN001
    """
    요청(namespace/name)을 모든 메시지 앞에 붙여주는 로거.
    """
    return _RequestAdapter(
        logging.getLogger(name),
        {"request": f"{request.namespace}/{request.name}"},
    )
