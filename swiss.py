# python3
"""Solver for swiss pairings.

Parties are sorted by rank and paired greedily from the top: each party takes
the best-ranked remaining opponent it has not been excluded from, and the
search backtracks only when the rest of the pool cannot be completed. The first
complete pairing found is returned, not an optimal one.
"""

import collections
import contextlib
import enum
import sys
import time

from typing import Any, Callable, Iterable, List, Optional, Sequence, Set, Tuple
from absl import app
from absl import flags
from absl import logging

import player as player_lib
import standings as standings_lib
import networkx as nx

Party = Any
PartyKey = str
Pair = Tuple[Party, Optional[Party]]
Pairings = List[Pair]

# Parties are paired with None for a bye. In the exclusion graph the bye is
# this node, which can never collide with a real (non-empty) key.
BYE_KEY = ''
FLAGS = flags.FLAGS

flags.DEFINE_bool(
    'write', False, 'Write the pairings to the cycle file.', short_name='w')
flags.DEFINE_bool(
    'tabprint', False, 'Write tab-separated names to stdout.', short_name='t')
flags.DEFINE_enum(
    'bye_policy', 'first_found', ['first_found', 'lowest_ranked'],
    'Which party sits out when the pool is odd.')
flags.DEFINE_integer(
    'max_steps',
    None,
    'Give up after examining this many candidate opponents.',
    lower_bound=1)


class ByePolicy(enum.Enum):
  """How the bye is assigned on an odd pool.

  FIRST_FOUND: the bye goes to whichever party the search leaves over. The
    top party of any sub-pool is never given the bye, so some solvable pools
    are reported as unpairable.
  LOWEST_RANKED: the bye goes to the lowest-ranked party without a previous
    bye for which the rest of the pool can still be paired.
  """
  FIRST_FOUND = 'first_found'
  LOWEST_RANKED = 'lowest_ranked'


def Odd(n):
  return n % 2 == 1


class _Budget(object):
  """Counts candidate opponents examined by a single search."""

  def __init__(self, max_steps: Optional[int]):
    self.max_steps = max_steps
    self.steps = 0

  def Tick(self):
    self.steps += 1
    if self.max_steps is not None and self.steps > self.max_steps:
      logging.warning('Pairing search gave up after %d steps.', self.max_steps)
      raise SearchBudgetExceeded(
          f'Gave up after examining {self.max_steps} candidate opponents.')


def FindPairings(parties: Sequence[Party],
                 is_excluded: Callable[[Party, Optional[Party]], bool],
                 bye_policy: ByePolicy = ByePolicy.FIRST_FOUND,
                 max_steps: Optional[int] = None) -> Optional[Pairings]:
  """Returns the first pairing of `parties` that avoids every exclusion.

  Args:
    parties: The parties to pair, best-ranked first.
    is_excluded: Whether two parties must not meet. Called with None as the
      second argument to ask whether a party may not be given a bye.
    bye_policy: How to choose the bye on an odd pool.
    max_steps: Maximum number of candidate opponents to examine, or None for
      no limit.

  Returns:
    A list of (party, opponent) tuples in which every party appears exactly
    once and the opponent is None for a bye, or None if no such list was
    found.

  Raises:
    SearchBudgetExceeded: `max_steps` candidates were examined without
      reaching an answer.
  """
  order = tuple(parties)
  budget = _Budget(max_steps)
  taken = [False] * len(order)
  if bye_policy == ByePolicy.LOWEST_RANKED and Odd(len(order)):
    pairings = _PairsWithLowestRankedBye(order, is_excluded, taken, budget)
  else:
    pairings = _Pairs(order, is_excluded, taken, budget)
  logging.info('Pairing search over %d parties %s after %d steps.',
               len(order), 'failed' if pairings is None else 'succeeded',
               budget.steps)
  return pairings


def _Pairs(order, is_excluded, taken, budget) -> Optional[Pairings]:
  """Pairs the parties of `order` not marked in `taken`.

  Each open match is a frame of [index of p1, indices of its candidate
  opponents, number of candidates tried]. The frames live on an explicit stack,
  so the pool size is not bounded by the interpreter's recursion limit.
  `taken` is restored to its original state before returning.
  """
  stack = []
  start = 0
  while True:
    while start < len(order) and taken[start]:
      start += 1
    if start == len(order):
      tail = []
      break
    rest = [j for j in range(start + 1, len(order)) if not taken[j]]
    if rest:
      stack.append([start, rest, 0])
    elif not is_excluded(order[start], None):
      tail = [(order[start], None)]
      break
    # Move the innermost open match on to its next candidate, closing
    # matches that have run out.
    while stack:
      frame = stack[-1]
      i, rest, tried = frame
      if tried:
        taken[rest[tried - 1]] = False
        logging.vlog(1, 'Backtracking from %s vs. %s.', order[i],
                     order[rest[tried - 1]])
      while tried < len(rest):
        j = rest[tried]
        tried += 1
        budget.Tick()
        if not (is_excluded(order[i], order[j]) or
                is_excluded(order[j], order[i])):
          taken[j] = True
          break
      else:
        stack.pop()
        continue
      frame[2] = tried
      start = i + 1
      break
    else:
      return None
  pairings = []
  for i, rest, tried in stack:
    j = rest[tried - 1]
    taken[j] = False
    pairings.append((order[i], order[j]))
  return pairings + tail


def _PairsWithLowestRankedBye(order, is_excluded, taken,
                              budget) -> Optional[Pairings]:
  """Gives the bye to the lowest-ranked eligible party, then pairs the rest."""
  for i in reversed(range(len(order))):
    budget.Tick()
    if is_excluded(order[i], None):
      continue
    taken[i] = True
    pairings = _Pairs(order, is_excluded, taken, budget)
    taken[i] = False
    if pairings is not None:
      return pairings + [(order[i], None)]
    logging.vlog(1, 'No pairing with a bye for %s.', order[i])
  return None


class Pairer(object):
  """Manages the party pool and pairing history of a league.

  Parties are opaque. `identity` maps each to a unique, non-empty string key
  and `rank` gives the sort key that orders them best first; ties are broken
  by key. A comparison function can be used as `rank` through
  `functools.cmp_to_key`.
  """

  def __init__(self,
               parties: Iterable[Party] = (),
               identity: Callable[[Party], PartyKey] = str,
               rank: Optional[Callable[[Party], Any]] = None,
               bye_policy=ByePolicy.FIRST_FOUND,
               max_steps: Optional[int] = None):
    self.identity = identity
    self.rank = rank
    self.bye_policy = ByePolicy(bye_policy)
    self.max_steps = max_steps
    self.parties = []
    self.exclusions = nx.Graph()
    self.SetParties(parties)

  def Key(self, party: Optional[Party]) -> PartyKey:
    """Returns the key of `party`, or BYE_KEY for None."""
    if party is None:
      return BYE_KEY
    key = self.identity(party)
    if not isinstance(key, str) or not key:
      raise InvalidPartyError(f'{party!r} has no usable identity: {key!r}')
    return key

  def SetParties(self, parties: Iterable[Party]) -> None:
    """Replaces the pool of parties.

    Parties that remain in the pool keep their exclusions. Exclusions of
    parties that leave the pool are forgotten.

    Raises:
      InvalidPartyError: A party is None, has an empty or non-string key, or
        shares its key with another party. The pool is left unchanged.
    """
    parties = list(parties)
    if any(party is None for party in parties):
      raise InvalidPartyError('A party cannot be None.')
    keys = collections.Counter(self.Key(party) for party in parties)
    duplicates = sorted(k for (k, v) in keys.items() if v > 1)
    if duplicates:
      raise InvalidPartyError(f'Duplicate party keys: {" ".join(duplicates)}')
    departed = {self.Key(party) for party in self.parties} - set(keys)
    self.exclusions.remove_nodes_from(departed)
    self.exclusions.add_nodes_from(keys)
    self.parties = parties

  def GetParties(self) -> List[Party]:
    """Returns the parties sorted by rank, best first."""
    rank = self.rank or self.Key
    return sorted(
        self.parties, key=lambda party: (rank(party), self.Key(party)))

  def Exclude(self, pairs: Iterable[Pair]) -> None:
    """Forbids each of `pairs` from being paired again.

    A pair whose second (or first) element is None forbids another bye. The
    output of `MakePairings` can be passed here directly. If any pair is
    invalid, none of them is recorded.
    """
    edges = []
    for a, b in pairs:
      if a is None and b is None:
        continue
      x, y = self.Key(a), self.Key(b)
      if x == y:
        raise SelfMatchError(a)
      edges.append((x, y))
    self.exclusions.add_edges_from(edges)

  def IsExcluded(self, a: Optional[Party], b: Optional[Party]) -> bool:
    return self.exclusions.has_edge(self.Key(a), self.Key(b))

  def Excluded(self, party: Optional[Party]) -> Set[PartyKey]:
    """Returns the keys `party` may not be paired with again."""
    return set(self.exclusions.adj.get(self.Key(party), ()))

  def MakePairings(self) -> Pairings:
    """Pairs the current pool.

    Raises:
      SearchExhausted: No pairing avoids the exclusions.
    """
    parties = self.GetParties()
    pairings = FindPairings(parties, self.IsExcluded, self.bye_policy,
                            self.max_steps)
    if pairings is None:
      raise SearchExhausted(
          f'No pairing of {len(parties)} parties avoids the '
          f'{self.exclusions.number_of_edges()} excluded pairs.')
    return pairings


def ValidatePairings(pairings: Pairings,
                     parties: Optional[Iterable[Party]] = None,
                     is_excluded: Optional[Callable[[Party, Party],
                                                    bool]] = None,
                     identity: Callable[[Party], PartyKey] = str) -> None:
  """Raises an error if the pairings aren't valid.

  Args:
    pairings: The proposed pairings.
    parties: The pool the pairings should cover exactly once.
    is_excluded: Whether two parties (or a party and None) must not meet.
    identity: Maps a party to its key.

  Raises:
    SelfMatchError: If a party is matched to itself.
    DuplicateMatchError: If a party appears in more than one match.
    WrongNumberOfMatchesError: If there is more than one bye, or the pairings
        do not cover `parties`.
    RepeatMatchError: If a match is excluded.
  """
  byes = sum(1 for pair in pairings if None in pair)
  if byes > 1:
    raise WrongNumberOfMatchesError(
        f'There are {byes} byes, but at most 1 was expected.')
  for p, q in pairings:
    if p is None and q is None:
      raise WrongNumberOfMatchesError('A match has no parties.')
    if p is not None and q is not None and identity(p) == identity(q):
      raise SelfMatchError(p)
  seen = collections.Counter(
      identity(p) for pair in pairings for p in pair if p is not None)
  dupes = sorted(k for (k, v) in seen.items() if v > 1)
  if dupes:
    raise DuplicateMatchError(' '.join(dupes))
  if parties is not None:
    expected = {identity(p) for p in parties}
    missing = sorted(expected - set(seen))
    unexpected = sorted(set(seen) - expected)
    if missing or unexpected:
      raise WrongNumberOfMatchesError(
          f'Missing: {missing}; not in the pool: {unexpected}.')
  if is_excluded is not None:
    repeats = [
        f'({identity(p)}, {"BYE" if q is None else identity(q)})'
        for (p, q) in (_ByeLast(pair) for pair in pairings)
        if is_excluded(p, q)
    ]
    if repeats:
      raise RepeatMatchError(' '.join(repeats))


def _ByeLast(pair: Pair) -> Pair:
  p, q = pair
  if p is None:
    return q, p
  return p, q


def PrintPairings(pairings: Pairings,
                  stream=None,
                  describe: Callable[[Party], str] = str):
  """Print a pretty table of the pairings to the given stream."""
  with contextlib.redirect_stdout(stream or sys.stdout):
    for pair in pairings:
      p, q = _ByeLast(pair)
      right = 'BYE' if q is None else describe(q)
      line = f'{describe(p):>36} vs. {right:<36}'
      print(line.rstrip())
    print()
    byes = sum(1 for pair in pairings if None in pair)
    plural = '' if byes == 1 else 's'
    print(f'{len(pairings) - byes} matches, {byes} bye{plural}')


def GeneratePairings(standings: standings_lib.Standings,
                     bye_policy=ByePolicy.FIRST_FOUND,
                     max_steps: Optional[int] = None,
                     tabprint: bool = False,
                     write: bool = False) -> Pairings:
  """Pairs the next cycle of a league.

  Raises:
    SearchExhausted: No pairing avoids the league's previous matches.
  """
  players = standings.GetPlayers()
  pairer = Pairer(
      players,
      identity=player_lib.Identity,
      rank=player_lib.Rank,
      bye_policy=bye_policy,
      max_steps=max_steps)
  pairer.Exclude(standings.GetPreviousPairings(players))
  start = time.time()
  pairings = pairer.MakePairings()
  ValidatePairings(pairings, players, pairer.IsExcluded, player_lib.Identity)
  if tabprint:
    for p, q in pairings:
      print(f'{p.name}\t{"BYE" if q is None else q.name}')
  else:
    PrintPairings(pairings, describe=player_lib.Describe)
  t = time.time() - start
  print(f'Finished in {t:.3f}s wall time.')

  if write:
    standings.Writeback(pairings)
  return pairings


def Main(argv):
  """Read standings and history, generate pairings, write them back."""
  if len(argv) != 3:
    raise app.UsageError('Usage: swiss.py DIRECTORY CYCLE')
  directory, cycle = argv[1:]
  standings = standings_lib.Standings(directory, int(cycle))
  try:
    GeneratePairings(
        standings,
        bye_policy=FLAGS.bye_policy,
        max_steps=FLAGS.max_steps,
        tabprint=FLAGS.tabprint,
        write=FLAGS.write)
  except SearchExhausted as e:
    sys.exit(f'No pairings found: {e}')


class Error(Exception):
  pass


class InvalidPartyError(Error):
  """A party has no usable key, or shares its key with another party."""


class SearchExhausted(Error):
  """No pairing satisfies the exclusions."""


class SearchBudgetExceeded(SearchExhausted):
  """The search examined too many candidates without reaching an answer."""


class DuplicateMatchError(Error):
  """The same party appears in more than one match."""


class SelfMatchError(Error):
  """A party is matched against itself."""


class RepeatMatchError(Error):
  """A match-up that was excluded appears in this set of pairings."""


class WrongNumberOfMatchesError(Error):
  """This set of pairings does not cover the pool."""


if __name__ == '__main__':
  app.run(Main)
