"""Asynchronous task lifecycle engine.

Submit a unit of work, poll it to a terminal state, download its artifacts,
and run many such lifecycles under a concurrency cap. Data flows one way:
``batch`` -> ``lifecycle`` -> (``submitter``, ``poller``) -> transport, and
``lifecycle`` -> ``materializer``.
"""
