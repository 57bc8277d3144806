import threading

from .logger_stream import EntryModel, LoggerStream, LogTarget


class Logger:
    """
    Registry of named ``LoggerStream`` instances. Looking up an unknown
    name creates a console stream for it.

    Usage:
        logger = Logger()
        stream = logger.get_stream("clientlb", path="logs/balancer.json")
        stream.log(BalancerInfo(message="ready", balancer="orders"))
    """

    def __init__(self) -> None:
        self._streams: dict[str, LoggerStream] = {}
        self._lock = threading.Lock()

    def __getitem__(self, name: str) -> LoggerStream:
        with self._lock:
            stream = self._streams.get(name)
            if stream is None:
                stream = self._streams[name] = LoggerStream(name=name)

            return stream

    def get_stream(
        self,
        name: str = "default",
        template: str | None = None,
        path: str | None = None,
        models: dict[str, EntryModel] | None = None,
    ) -> LoggerStream:
        return self.configure(
            name,
            template=template,
            path=path,
            models=models,
        )

    def configure(
        self,
        name: str = "default",
        template: str | None = None,
        path: str | None = None,
        models: dict[str, EntryModel] | None = None,
    ) -> LoggerStream:
        """Replace the stream registered as ``name``, closing the old one."""
        target = LogTarget.from_path(path)
        stream = LoggerStream(
            name=name,
            template=template,
            filename=target.filename,
            directory=target.directory,
            models=models,
        )

        with self._lock:
            previous = self._streams.get(name)
            self._streams[name] = stream

        if previous is not None:
            previous.close()

        return stream

    def close(self):
        with self._lock:
            streams = list(self._streams.values())
            self._streams.clear()

        for stream in streams:
            stream.close()
