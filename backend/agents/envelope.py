"""Result Envelope construction and money conversion shared by all agents."""
from datetime import datetime, timezone

from app.constants import CURRENCY_RATES, AgentName, Currency
from app.schemas import Money, NetworkSnapshot, ResultEnvelope


def build_envelope(
    agent: AgentName,
    snapshot: NetworkSnapshot,
    payload,
    confidence: float,
) -> ResultEnvelope:
    """Wrap a complete payload, stamping the snapshot it was computed from."""
    return ResultEnvelope[type(payload)](
        agent_name=agent.value,
        generated_at=datetime.now(timezone.utc),
        confidence_score=round(min(1.0, max(0.0, confidence)), 3),
        state_version=snapshot.state_version,
        tick_count=snapshot.tick_count,
        payload=payload,
    )


def to_money(amount_usd: float, currency: Currency) -> Money:
    """USD base figure → Money in the configuration currency (fixed rate table)."""
    return Money(amount=round(amount_usd * CURRENCY_RATES[currency], 2), currency=currency)
