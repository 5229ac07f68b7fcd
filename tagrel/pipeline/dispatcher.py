"""Trigger evaluation, concurrency gating and matrix fan-out.

One dispatched event is one run. The run owns the concurrency group
`(workflow, ref)` and executes the pipeline once per configured runner label.
Matrix entries are independent unless fail_fast is set.
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from tagrel.core.config import Config
from tagrel.output.console import ConsoleProtocol
from tagrel.pipeline.concurrency import CancellationToken, ConcurrencyGate, group_key
from tagrel.pipeline.errors import Cancelled
from tagrel.pipeline.model import RunRecord, RunState, TriggerEvent
from tagrel.pipeline.runner import ReleasePipeline
from tagrel.pipeline.trigger import TagFilter


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    """Result of dispatching one event.

    records is empty when the event did not trigger the pipeline.
    """

    event: TriggerEvent
    group: str
    triggered: bool
    records: tuple[RunRecord, ...] = ()

    @property
    def succeeded(self) -> bool:
        return all(r.succeeded for r in self.records)

    @property
    def cancelled(self) -> bool:
        return any(r.state == RunState.CANCELLED for r in self.records)


class Dispatcher:
    def __init__(
        self,
        *,
        config: Config,
        pipeline: ReleasePipeline,
        console: ConsoleProtocol,
        gate: ConcurrencyGate | None = None,
    ) -> None:
        self._config = config
        self._pipeline = pipeline
        self._console = console
        self._filter = TagFilter(config.tags)
        self.gate = gate or ConcurrencyGate(cancel_in_progress=config.cancel_in_progress)

    def triggers(self, event: TriggerEvent) -> bool:
        return self._filter.matches(event)

    def dispatch(self, event: TriggerEvent, token: CancellationToken | None = None) -> DispatchOutcome:
        """Run the pipeline for one event and block until it reaches a terminal state."""
        key = group_key(self._config.workflow, event.ref)
        if not self.triggers(event):
            self._console.info(f"{event.ref} does not match {', '.join(self._config.tags)}; skipped")
            return DispatchOutcome(event=event, group=key, triggered=False)
        return self._run(event, token or CancellationToken(), enqueued=False)

    def dispatch_all(self, events: Sequence[TriggerEvent]) -> list[DispatchOutcome]:
        """Dispatch events concurrently, as if pushed in the given order.

        Later events for the same group supersede earlier ones. Outcomes are
        returned in input order.
        """
        jobs: list[tuple[TriggerEvent, CancellationToken | None]] = []
        for event in events:
            if not self.triggers(event):
                jobs.append((event, None))
                continue
            token = CancellationToken()
            # Enqueue in push order before any thread starts.
            self.gate.enqueue(group_key(self._config.workflow, event.ref), token)
            jobs.append((event, token))

        def work(job: tuple[TriggerEvent, CancellationToken | None]) -> DispatchOutcome:
            event, token = job
            if token is None:
                return self.dispatch(event)
            return self._run(event, token, enqueued=True)

        if not jobs:
            return []
        with ThreadPoolExecutor(max_workers=len(jobs)) as pool:
            return list(pool.map(work, jobs))

    def _run(self, event: TriggerEvent, token: CancellationToken, *, enqueued: bool) -> DispatchOutcome:
        key = group_key(self._config.workflow, event.ref)
        records = [self._pipeline.start(event, runner) for runner in self._config.platforms]

        with self.gate.hold(key, token, enqueued=enqueued) as acquired:
            if not acquired:
                reason = token.reason or "cancelled"
                self._console.warning(f"{event.ref}: {reason}")
                for record in records:
                    record.cancel(Cancelled(group=key, reason=reason))
                return DispatchOutcome(event=event, group=key, triggered=True, records=tuple(records))

            for index, record in enumerate(records):
                self._pipeline.run(record, token)
                if self._config.fail_fast and record.state == RunState.FAILED:
                    for rest in records[index + 1 :]:
                        rest.cancel(Cancelled(group=key, reason=f"fail-fast: {record.runner} failed"))
                    break

        return DispatchOutcome(event=event, group=key, triggered=True, records=tuple(records))
