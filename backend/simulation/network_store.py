"""
Network State Store: single owner of the live supply-chain network.

Snapshots are immutable and published by reference swap, so readers never
take a lock and always see a whole snapshot. The two write paths
(set_configuration, tick) serialise on one lock; a tick that was computed
against a snapshot which has since been replaced is dropped, so a
configuration change always wins over an in-flight tick.
"""
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np

from app.config import settings
from app.constants import (
    MAX_CAPACITY_UNITS,
    MIN_CAPACITY_UNITS,
    TEMPERATURE_ALARM_HIGH,
    TEMPERATURE_ALARM_LOW,
    NodeStatus,
    NodeType,
    RiskProfile,
    SensorType,
)
from app.errors import EmptyNetworkState, InternalInvariantViolation, InvalidConfiguration, NodeNotFound
from app.schemas import NetworkSnapshot, SensorEvent, SupplyChainConfig, SupplyChainNode
from simulation.network_analytics import derive_status
from simulation.network_synthesizer import NetworkSynthesizer

logger = logging.getLogger(__name__)

Subscriber = Callable[[NetworkSnapshot], None]


def _out_of_band(temperature: Optional[float]) -> bool:
    return temperature is not None and not TEMPERATURE_ALARM_LOW <= temperature <= TEMPERATURE_ALARM_HIGH


@dataclass(frozen=True)
class TickPolicy:
    max_utilization_delta:      float = 5.0
    critical_flip_probability:  float = 0.05
    high_risk_flip_multiplier:  float = 2.0
    temperature_drift:          float = 0.5
    temperature_min:            float = 0.0
    temperature_max:            float = 30.0
    max_delay_recovery:         float = 1.0   # days recovered per tick, at most
    flip_delay_min:             float = 2.0
    flip_delay_max:             float = 10.0

    @classmethod
    def from_settings(cls) -> "TickPolicy":
        return cls(
            max_utilization_delta=settings.TICK_MAX_UTILIZATION_DELTA,
            critical_flip_probability=settings.TICK_CRITICAL_FLIP_PROBABILITY,
            high_risk_flip_multiplier=settings.TICK_HIGH_RISK_FLIP_MULTIPLIER,
        )

    def flip_probability(self, risk: RiskProfile) -> float:
        scale = self.high_risk_flip_multiplier if risk == RiskProfile.HIGH else 1.0
        return min(1.0, self.critical_flip_probability * scale)


class NetworkStateStore:
    """
    Owns the current NetworkSnapshot.

    Readers call get_state() once and work on the returned snapshot; it is
    never mutated afterwards.
    """

    def __init__(
        self,
        synthesizer: Optional[NetworkSynthesizer] = None,
        tick_policy: Optional[TickPolicy] = None,
        seed: Optional[int] = None,
        event_buffer_size: Optional[int] = None,
    ):
        self._synthesizer = synthesizer or NetworkSynthesizer()
        self._tick_policy = tick_policy or TickPolicy.from_settings()

        synth_seq, tick_seq = np.random.SeedSequence(seed).spawn(2)
        self._synthesis_rng = np.random.default_rng(synth_seq)
        self._tick_rng = np.random.default_rng(tick_seq)

        self._write_lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._snapshot: Optional[NetworkSnapshot] = None
        self._state_version = 0

        self._events: deque = deque(maxlen=event_buffer_size or settings.SENSOR_EVENT_BUFFER_SIZE)
        self._subscribers: List[Subscriber] = []

    # ── Reads ────────────────────────────────────────────────────────────────

    @property
    def has_state(self) -> bool:
        return self._snapshot is not None

    @property
    def state_version(self) -> int:
        return self._state_version

    def get_state(self) -> NetworkSnapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise EmptyNetworkState()
        return snapshot

    def get_configuration(self) -> SupplyChainConfig:
        return self.get_state().configuration

    def get_node(self, node_id: str) -> SupplyChainNode:
        node = self.get_state().node(node_id)
        if node is None:
            raise NodeNotFound(node_id)
        return node

    def get_sensor_events(self, limit: Optional[int] = None) -> List[SensorEvent]:
        """Most recent sensor events, oldest first."""
        events = list(self._events)
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    # ── Writes ───────────────────────────────────────────────────────────────

    def set_configuration(self, config: Any, seed: Optional[int] = None) -> NetworkSnapshot:
        """Validate, re-synthesise and atomically replace the whole network."""
        try:
            cfg = SupplyChainConfig.from_payload(config)
        except InvalidConfiguration as e:
            logger.warning(f"Configuration rejected: {e.errors}")
            raise

        with self._write_lock:
            rng = np.random.default_rng(seed) if seed is not None else self._synthesis_rng
            now = datetime.now(timezone.utc)
            nodes = self._synthesizer.synthesize(cfg, rng=rng, generated_at=now)

            snapshot = NetworkSnapshot(
                nodes=tuple(nodes),
                configuration=cfg,
                state_version=self._state_version + 1,
                tick_count=0,
                last_updated=now,
            )
            self._state_version = snapshot.state_version
            self._snapshot = snapshot
            self._events.clear()

        logger.info(
            f"Configuration accepted: stateVersion={snapshot.state_version}, "
            f"{cfg.node_count} nodes, {cfg.region.value}/{cfg.industry.value}, risk={cfg.risk_profile.value}"
        )
        self._notify(snapshot)
        return snapshot

    def tick(self, rng: Optional[np.random.Generator] = None) -> Optional[NetworkSnapshot]:
        """
        Perturb every node once and publish the result.

        Returns the committed snapshot, or None when there is no network yet
        or the tick was overtaken by a configuration change.
        """
        with self._tick_lock:
            base = self._snapshot
            if base is None:
                logger.debug("Tick skipped: no configuration set")
                return None

            rng = rng if rng is not None else self._tick_rng
            now = datetime.now(timezone.utc)
            nodes, events = self._perturb(base, rng, now)
            self._check_invariants(base, nodes)

            with self._write_lock:
                current = self._snapshot
                if current is None or (current.state_version, current.tick_count) != (
                    base.state_version, base.tick_count
                ):
                    logger.debug(
                        f"Discarding in-flight tick against stateVersion={base.state_version}"
                    )
                    return None

                snapshot = base.model_copy(update={
                    "nodes": tuple(nodes),
                    "tick_count": base.tick_count + 1,
                    "last_updated": now,
                })
                self._snapshot = snapshot
                self._events.extend(events)

        logger.debug(
            f"Tick {snapshot.tick_count} committed (stateVersion={snapshot.state_version}, "
            f"{len(events)} sensor events)"
        )
        self._notify(snapshot)
        return snapshot

    # ── Subscriptions ────────────────────────────────────────────────────────

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._write_lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._write_lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, snapshot: NetworkSnapshot) -> None:
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception(f"Subscriber {callback!r} failed on stateVersion={snapshot.state_version}")

    # ── Tick internals ───────────────────────────────────────────────────────

    def _perturb(
        self, base: NetworkSnapshot, rng: np.random.Generator, now: datetime
    ) -> Tuple[List[SupplyChainNode], List[SensorEvent]]:
        policy = self._tick_policy
        p_flip = policy.flip_probability(base.configuration.risk_profile)
        nodes: List[SupplyChainNode] = []
        events: List[SensorEvent] = []

        for node in base.nodes:
            # Fixed draw order per node keeps ticks reproducible under a seed
            delta = rng.uniform(-policy.max_utilization_delta, policy.max_utilization_delta)
            temp_delta = rng.uniform(-policy.temperature_drift, policy.temperature_drift)
            recovery = rng.uniform(0.0, policy.max_delay_recovery)
            flip_draw = rng.random()
            flip_util = rng.uniform(10.0, 39.9)
            flip_delay = rng.uniform(policy.flip_delay_min, policy.flip_delay_max)

            utilization = round(float(np.clip(node.utilization_pct + delta, 0.0, 100.0)), 1)

            temperature = node.temperature_c
            if temperature is not None:
                temperature = round(float(np.clip(
                    temperature + temp_delta, policy.temperature_min, policy.temperature_max
                )), 1)

            delay = node.delay_days
            if delay:
                delay = round(max(0.0, delay - float(recovery)), 1)
            if delay == 0 and node.type != NodeType.DISTRIBUTOR:
                delay = None

            flipped = flip_draw < p_flip
            if flipped:
                utilization = round(float(flip_util), 1)
                delay = round(float(flip_delay), 1)

            status = derive_status(utilization, delay)
            updated = node.model_copy(update={
                "utilization_pct": utilization,
                "inventory_units": int(round(node.capacity_units * utilization / 100.0)),
                "status": status,
                "temperature_c": temperature,
                "delay_days": delay,
                "last_updated": now,
            })
            nodes.append(updated)
            events.extend(self._sensor_events(node, updated, flipped, now))

        return nodes, events

    @staticmethod
    def _sensor_events(
        before: SupplyChainNode, after: SupplyChainNode, flipped: bool, now: datetime
    ) -> List[SensorEvent]:
        events = []
        if after.status != before.status:
            events.append(SensorEvent(
                node_id=after.id,
                timestamp=now,
                sensor_type=SensorType.STATUS,
                value=after.utilization_pct,
                is_anomaly=after.status != NodeStatus.HEALTHY,
                severity=after.status,
                previous_status=before.status,
            ))
        if flipped:
            logger.warning(
                f"Node {after.id} ({after.name}) disrupted: utilization {after.utilization_pct}%, "
                f"delay {after.delay_days} days"
            )
            events.append(SensorEvent(
                node_id=after.id,
                timestamp=now,
                sensor_type=SensorType.DELAY,
                value=after.delay_days,
                is_anomaly=True,
                severity=NodeStatus.CRITICAL,
            ))
        # Only the reading that leaves the safe band is logged, not every tick outside it
        if _out_of_band(after.temperature_c) and not _out_of_band(before.temperature_c):
            events.append(SensorEvent(
                node_id=after.id,
                timestamp=now,
                sensor_type=SensorType.TEMPERATURE,
                value=after.temperature_c,
                is_anomaly=True,
                severity=NodeStatus.WARNING,
            ))
        return events

    @staticmethod
    def _check_invariants(base: NetworkSnapshot, nodes: Sequence[SupplyChainNode]) -> None:
        problems = []
        if [n.id for n in nodes] != base.node_ids:
            problems.append("node ids changed")
        for n in nodes:
            if not 0.0 <= n.utilization_pct <= 100.0:
                problems.append(f"{n.id}: utilization {n.utilization_pct} out of range")
            if not MIN_CAPACITY_UNITS <= n.capacity_units <= MAX_CAPACITY_UNITS:
                problems.append(f"{n.id}: capacity {n.capacity_units} out of range")
            if n.status != derive_status(n.utilization_pct, n.delay_days):
                problems.append(f"{n.id}: status {n.status.value} inconsistent with metrics")

        if problems:
            logger.critical(
                f"Invariant violation in tick on stateVersion={base.state_version}; tick discarded: {problems}"
            )
            raise InternalInvariantViolation("Tick produced an invalid network state", details=problems)
