import logging

FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=FORMAT)
    # uvicorn access lines duplicate the request middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
