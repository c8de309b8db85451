"""
DeFiSeek - Wallet Risk Agents

``WalletRiskAgent`` maps the UnleashNFTs wallet score onto a risk view.
``MockWalletRiskAgent`` is a deterministic stand-in for demos; it is only
registered when explicitly enabled and never substitutes for a failing
production call.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from defiseek.errors import AgentDataUnavailable
from defiseek.logging import get_logger
from defiseek.models import RiskLevel, WalletRisk

from agents.base import Agent, WalletAgent, WalletInput, extract_wallet_address

logger = get_logger(__name__, component="wallet_risk")

AGENT_ID = "walletRiskAgent"
HASH_MODULUS = 2**31
MS_PER_DAY = 86_400_000


def determine_risk_level(risk_score: int) -> RiskLevel:
    if risk_score >= 80:
        return RiskLevel.CRITICAL
    if risk_score >= 60:
        return RiskLevel.HIGH
    if risk_score >= 30:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def generate_recommendations(risk_score: int, flags: list[str]) -> list[str]:
    if risk_score >= 80:
        recommendations = [
            "🚨 AVOID: This wallet shows critical risk indicators",
            "🛡️ Do not send funds to this address",
            "📞 Report suspicious activity if you've interacted with this wallet",
        ]
    elif risk_score >= 60:
        recommendations = [
            "⚠️ HIGH RISK: Exercise extreme caution",
            "🔍 Verify the legitimacy of any transactions",
            "💰 Consider using small test amounts first",
        ]
    elif risk_score >= 30:
        recommendations = [
            "⚡ MEDIUM RISK: Proceed with caution",
            "🔍 Double-check transaction details",
            "📊 Monitor for unusual activity",
        ]
    else:
        recommendations = [
            "✅ LOW RISK: Appears to be a normal wallet",
            "🔍 Still verify transaction details",
            "📊 Stay vigilant for any changes",
        ]

    if "known_scam" in flags:
        recommendations.append("🚫 AVOID: This address is associated with known scams")
    if "high_volume" in flags:
        recommendations.append("📈 High transaction volume detected")
    return recommendations


def address_hash(address: str) -> int:
    """Rolling polynomial hash over the address characters, mod 2**31."""
    h = 0
    for char in address:
        h = (h * 31 + ord(char)) % HASH_MODULUS
    return h


def mock_wallet_risk(address: str, now: datetime | None = None) -> WalletRisk:
    """
    Deterministic risk view computed from the address alone.

    Score, level and flags are a pure function of ``address``; only
    ``lastActivity`` depends on ``now``.
    """
    h = address_hash(address)
    risk_score = abs(h) % 100

    flags: list[str] = []
    if risk_score > 70:
        flags.append("high_risk_pattern")
    if risk_score > 50:
        flags.append("unusual_activity")
    if "dead" in address.lower():
        flags.append("known_scam")

    now = now or datetime.now(timezone.utc)
    last_activity = now - timedelta(milliseconds=h % MS_PER_DAY)

    return WalletRisk(
        address=address,
        risk_score=risk_score,
        risk_level=determine_risk_level(risk_score),
        flags=flags,
        analysis={
            "transactionCount": h % 1000,
            "totalValue": (h % 10000) / 100,
            "suspiciousActivity": risk_score > 60,
            "knownScamAssociation": "known_scam" in flags,
            "lastActivity": last_activity.isoformat(),
        },
        recommendations=generate_recommendations(risk_score, flags),
    )


class WalletRiskAgent(WalletAgent[WalletRisk]):
    """Risk view derived from the wallet score endpoint."""

    id = AGENT_ID
    description = "Analyzes wallet risk and safety with recommendations"
    path = "wallet/score"
    output_model = WalletRisk

    async def run(self, params: WalletInput) -> dict:
        score = await self.client.first_item(
            self.path,
            {
                "wallet_address": params.address,
                "time_range": "all",
                "offset": 0,
                "limit": 30,
            },
            agent_id=self.id,
        )

        if not isinstance(score, dict):
            raise AgentDataUnavailable(self.id, "Wallet score record is malformed")
        try:
            wallet_score = float(score.get("wallet_score") or 0)
            anomalous_score = float(score.get("anomalous_pattern_score") or 0)
            volume_score = float(score.get("volume_score") or 0)
        except (TypeError, ValueError) as e:
            raise AgentDataUnavailable(self.id, "Wallet score record has non-numeric scores") from e

        risk_score = max(0, min(100, round(100 - wallet_score)))

        flags: list[str] = []
        illicit = score.get("illicit")
        if illicit and str(illicit).lower() != "none":
            flags.append("known_scam")
        if anomalous_score > 70:
            flags.append("high_risk_pattern")
        if volume_score > 80:
            flags.append("high_volume")

        logger.info("wallet_risk_scored", address=params.address, risk_score=risk_score, flags=flags)

        return {
            "address": params.address,
            "riskScore": risk_score,
            "riskLevel": determine_risk_level(risk_score).value,
            "flags": flags,
            "analysis": {
                "transactionCount": 0,
                "totalValue": 0.0,
                "suspiciousActivity": risk_score >= 60,
                "knownScamAssociation": "known_scam" in flags,
                "lastActivity": datetime.now(timezone.utc).isoformat(),
            },
            "recommendations": generate_recommendations(risk_score, flags),
        }


class MockWalletRiskAgent(Agent[WalletInput, WalletRisk]):
    """Deterministic wallet-risk agent for demos and tests."""

    id = AGENT_ID
    description = "Analyzes wallet risk and safety with recommendations (demo data)"
    input_model = WalletInput
    output_model = WalletRisk

    async def run(self, params: WalletInput) -> WalletRisk:
        return mock_wallet_risk(params.address)

    async def input_from_query(self, query: str) -> WalletInput:
        return WalletInput(address=extract_wallet_address(query, self.id))
