"""
DeFiSeek - Wallet Agents

UnleashNFTs wallet endpoints: reputation score, activity metrics and
ERC-20 holdings.
"""

from __future__ import annotations

from defiseek.models import WalletMetrics, WalletScore, WalletToken

from agents.base import WalletAgent, WalletInput


class WalletScoreAgent(WalletAgent[WalletScore]):
    id = "walletScoreAgent"
    description = "Fetches wallet reputation and risk-interaction scores"
    path = "wallet/score"
    output_model = WalletScore
    ui_component = "CheckWalletScoreTool"

    async def run(self, params: WalletInput) -> dict:
        return await self.client.first_item(
            self.path,
            {
                "wallet_address": params.address,
                "time_range": "all",
                "offset": 0,
                "limit": 30,
            },
            agent_id=self.id,
        )


class WalletMetricsAgent(WalletAgent[WalletMetrics]):
    id = "walletMetricsAgent"
    description = "Fetches wallet balance, volume, inflow/outflow and activity metrics"
    path = "wallet/metrics"
    output_model = WalletMetrics
    ui_component = "WalletMetricsTool"

    async def run(self, params: WalletInput) -> dict:
        return await self.client.first_item(
            self.path,
            {
                "blockchain": params.blockchain,
                "wallet": params.address,
                "time_range": "all",
                "offset": 0,
                "limit": 30,
            },
            agent_id=self.id,
        )


class ERC20TokenAgent(WalletAgent[WalletToken]):
    id = "erc20TokenAgent"
    description = "Fetches ERC-20 token balances held by a wallet"
    path = "wallet/tokens"
    output_model = WalletToken

    async def run(self, params: WalletInput) -> dict:
        return await self.client.first_item(
            self.path,
            {
                "wallet": params.address,
                "blockchain": params.blockchain,
                "offset": 0,
                "limit": 100,
            },
            agent_id=self.id,
        )
