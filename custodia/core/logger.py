import logging, json, sys, time, os


class JsonFormatter(logging.Formatter):
    """Una línea JSON por registro; el mensaje se escapa con json.dumps."""

    def format(self, record):
        return json.dumps({
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }, ensure_ascii=False)


def get_logger(name="custodia", level=None, to_file=None):
    """
    Logger estructurado (una línea JSON por evento, marcas de tiempo UTC).

    Nunca se debe pasar material de clave ni textos en claro a estos loggers:
    solo etiquetas, tipos de clave, tamaños y códigos de error.
    """
    logger = logging.getLogger(name)
    if level is None:
        level = os.getenv("CUSTODIA_LOG_LEVEL", "INFO").upper()
    logger.setLevel(level)

    # Los loggers hijos (custodia.store, ...) propagan al raíz "custodia"
    root = logging.getLogger("custodia")
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        formatter = JsonFormatter(datefmt="%Y-%m-%dT%H:%M:%SZ")
        formatter.converter = time.gmtime
        handler.setFormatter(formatter)
        root.addHandler(handler)

        if to_file:
            os.makedirs(os.path.dirname(to_file) or ".", exist_ok=True)
            file_handler = logging.FileHandler(to_file)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    return logger
