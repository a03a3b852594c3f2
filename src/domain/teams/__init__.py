"""Team generation."""

from domain.teams.balancer import TeamBalance, TeamBalancer, ThreeTeamBalance

__all__ = ["TeamBalance", "TeamBalancer", "ThreeTeamBalance"]
