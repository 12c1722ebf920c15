# python3
"""Player datatype."""
import fractions
from typing import Dict, Iterable, List, NamedTuple, Optional, Text, Tuple

from absl import logging

Name = Text
Username = Text


class Player(NamedTuple):
  id: Username
  name: Name
  wins: int = 0
  losses: int = 0

  @property
  def score(self) -> fractions.Fraction:
    """Match win rate, starting from 1/2 for a player with no matches."""
    return fractions.Fraction(self.wins + 1, self.wins + self.losses + 2)


def FromRecord(id_, name, wins, losses) -> Player:
  """Builds a player from a win-loss record.

  Raises:
    ValueError: A count is not an integer, or is negative.
  """
  wins, losses = int(wins), int(losses)
  if wins < 0 or losses < 0:
    raise ValueError(f'{id_} has a negative record: {wins}-{losses}')
  return Player(id_, name, wins, losses)


def Identity(player: Player) -> Username:
  return player.id


def Rank(player: Player):
  """Sort key placing the best record first."""
  return -player.score


def Describe(player: Player) -> str:
  score = f'{float(player.score):.3f}'.lstrip('0')
  return f'{player.name} ({score})'


def ResolveMatches(
    matches: Iterable[Tuple[Username, Optional[Username]]],
    players: Iterable[Player]
) -> List[Tuple[Player, Optional[Player]]]:
  """Turns matches between usernames into matches between `players`.

  An empty or missing second username is a bye. Matches involving someone who
  is no longer among `players` are dropped.
  """
  players_by_id: Dict[Username, Player] = {p.id: p for p in players}
  resolved = []
  for a, b in matches:
    if a not in players_by_id or (b and b not in players_by_id):
      logging.info('Ignoring match of departed player: %s vs. %s', a, b)
      continue
    resolved.append((players_by_id[a], players_by_id[b] if b else None))
  return resolved
