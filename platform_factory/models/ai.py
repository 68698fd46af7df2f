"""
LLM usage ledger.

One ``AIUsageLog`` row is written per gateway call, whether it succeeded,
failed over to another provider, or failed outright and sent the pipeline
down its heuristic path. Rows carry the request trace id so a pipeline
request can be joined to the model calls it made.
"""

from datetime import datetime, timezone

from platform_factory.models import db

# USD per 1M tokens: (input, output). Unlisted models (local stub) cost nothing.
MODEL_PRICING = {
    "claude-3-5-haiku-20241022": (1.00, 5.00),
    "claude-3-5-sonnet-20241022": (3.00, 15.00),
    "claude-sonnet-4-20250514": (3.00, 15.00),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4o": (2.50, 10.00),
    "gemini-2.5-flash": (0.30, 2.50),
    "gemini-2.5-pro": (1.25, 10.00),
}


def calculate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    input_rate, output_rate = MODEL_PRICING.get(model, (0.0, 0.0))
    return (prompt_tokens * input_rate + completion_tokens * output_rate) / 1_000_000


class AIUsageLog(db.Model):
    __tablename__ = "ai_usage_logs"

    id = db.Column(db.Integer, primary_key=True)
    trace_id = db.Column(db.String(64), nullable=True, index=True)
    purpose = db.Column(db.String(64), default="general", comment="requirement_analysis / specification_synthesis")
    user = db.Column(db.String(150), default="system")

    provider = db.Column(db.String(30), nullable=False, comment="anthropic / openai / gemini / local")
    fallback_provider = db.Column(db.String(30), nullable=True)
    model = db.Column(db.String(80), nullable=False)

    prompt_tokens = db.Column(db.Integer, default=0)
    completion_tokens = db.Column(db.Integer, default=0)
    total_tokens = db.Column(db.Integer, default=0)
    cost_usd = db.Column(db.Float, default=0.0)
    latency_ms = db.Column(db.Integer, default=0)

    success = db.Column(db.Boolean, default=True)
    error_message = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        state = "ok" if self.success else "failed"
        return f"<AIUsageLog {self.id} {self.purpose} {self.provider}/{self.model} {state}>"

    def to_dict(self):
        return {
            "id": self.id,
            "traceId": self.trace_id,
            "purpose": self.purpose,
            "user": self.user,
            "provider": self.provider,
            "fallbackProvider": self.fallback_provider,
            "model": self.model,
            "tokens": {
                "prompt": self.prompt_tokens,
                "completion": self.completion_tokens,
                "total": self.total_tokens,
            },
            "costUsd": round(self.cost_usd or 0.0, 6),
            "latencyMs": self.latency_ms,
            "success": self.success,
            "error": self.error_message,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
