"""ABOUTME: Logging configuration shared by the API, the invoice worker and the CLI
ABOUTME: Routes stdlib and structlog records through one structlog formatter, tagged with the process component"""

import logging.config
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from typing import Any

import structlog

from v2backoffice import config

timestamper = structlog.processors.TimeStamper(fmt="iso")

# set by logging_setup(), the first call also installs the handlers
_component = "api"
_configured = False


def add_component(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Tag every record with the process that wrote it: api, worker or cli."""
    event_dict.setdefault("component", _component)
    return event_dict


# records from stdlib loggers (ours use logging.getLogger) get the same fields as structlog ones
pre_chain = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    add_component,
    timestamper,
]


def handler_name() -> str:
    return "dev_console" if config.is_development() else "default"


def build_logging_config(log_level: int = logging.INFO) -> dict[str, Any]:
    level_name = logging.getLevelName(log_level)
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processor": structlog.dev.ConsoleRenderer(colors=False),
                "foreign_pre_chain": pre_chain,
            },
            "json": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processor": structlog.processors.JSONRenderer(),
                "foreign_pre_chain": pre_chain,
            },
        },
        "handlers": {
            "default": {"level": level_name, "class": "logging.StreamHandler", "formatter": "json"},
            "dev_console": {"level": "DEBUG", "class": "logging.StreamHandler", "formatter": "console"},
        },
        "loggers": {
            "": {"handlers": [handler_name()], "level": level_name, "propagate": True},
            # one line per request is enough, werkzeug repeats it
            "werkzeug": {"level": "WARNING"},
        },
    }


def logging_setup(log_level: int = logging.INFO, component: str = "api") -> None:
    """Configure stdlib logging and structlog for this process."""
    global _component, _configured
    _component = component

    if not _configured:
        _configure(log_level)
        _configured = True

    handler = logging.getHandlerByName(handler_name())
    if handler is not None:
        handler.setLevel(log_level)
    logging.getLogger().setLevel(log_level)

    if config.should_log_all_requests():
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger("werkzeug").setLevel(logging.INFO)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)


def _configure(log_level: int) -> None:
    logging.config.dictConfig(build_logging_config(log_level))
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            add_component,
            structlog.stdlib.PositionalArgumentsFormatter(),
            timestamper,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@contextmanager
def invoice_job_context(job_id: Any) -> Iterator[None]:
    """Every record written inside the block carries the invoice job id."""
    with structlog.contextvars.bound_contextvars(invoice_job_id=str(job_id)):
        yield
