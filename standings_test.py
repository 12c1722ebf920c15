import contextlib
import io
import os
import tempfile

from absl import app
from absl.testing import absltest

import player as player_lib
import standings
import swiss

STANDINGS = """username\tname\twins\tlosses
alice\tAlice\t3\t0
bob\tBob\t2\t1
carol\tCarol\t1\t2
dave\tDave\t0\t3
erin\tErin\t1\t1
"""


class TestStandings(absltest.TestCase):

  def setUp(self):
    super().setUp()
    self.directory = self.enter_context(tempfile.TemporaryDirectory())
    self.Write('standings.tsv', STANDINGS)

  def Write(self, filename, contents):
    with open(os.path.join(self.directory, filename), 'w') as f:
      f.write(contents)

  def Read(self, filename):
    with open(os.path.join(self.directory, filename)) as f:
      return f.read()

  def testGetPlayers(self):
    with contextlib.redirect_stdout(io.StringIO()):
      players = standings.Standings(self.directory, 1).GetPlayers()
    self.assertLen(players, 5)
    self.assertEqual(player_lib.Player('bob', 'Bob', 2, 1), players[1])

  def testDuplicatePlayer(self):
    self.Write('standings.tsv', STANDINGS + 'bob\tRobert\t0\t0\n')
    with contextlib.redirect_stdout(io.StringIO()):
      with self.assertRaises(standings.DuplicatePlayerError):
        standings.Standings(self.directory, 1).GetPlayers()

  def testNegativeRecord(self):
    self.Write('standings.tsv', STANDINGS + 'zed\tZed\t-1\t-1\n')
    with contextlib.redirect_stdout(io.StringIO()):
      with self.assertRaises(ValueError):
        standings.Standings(self.directory, 1).GetPlayers()

  def testCycleNumbering(self):
    with self.assertRaises(ValueError):
      standings.Standings(self.directory, 0)

  def testGetPreviousPairings(self):
    self.Write('cycle-1.tsv', 'alice\tbob\ncarol\tzoe\ndave\t\n')
    self.Write('cycle-2.tsv', 'erin\talice\n\n')
    sheet = standings.Standings(self.directory, 3)
    with contextlib.redirect_stdout(io.StringIO()):
      players = sheet.GetPlayers()
    by_id = {p.id: p for p in players}
    self.assertEqual([
        (by_id['alice'], by_id['bob']),
        (by_id['dave'], None),
        (by_id['erin'], by_id['alice']),
    ], sheet.GetPreviousPairings(players))

  def testFirstCycleHasNoHistory(self):
    sheet = standings.Standings(self.directory, 1)
    self.assertEqual([], sheet.GetPreviousPairings([]))

  def testWriteback(self):
    sheet = standings.Standings(self.directory, 1)
    alice = player_lib.Player('alice', 'Alice')
    bob = player_lib.Player('bob', 'Bob')
    with contextlib.redirect_stdout(io.StringIO()):
      sheet.Writeback([(alice, bob), (player_lib.Player('dave', 'Dave'), None)])
    self.assertEqual('alice\tbob\ndave\t\n', self.Read('cycle-1.tsv'))


class TestGeneratePairings(absltest.TestCase):

  def setUp(self):
    super().setUp()
    self.directory = self.enter_context(tempfile.TemporaryDirectory())
    with open(os.path.join(self.directory, 'standings.tsv'), 'w') as f:
      f.write(STANDINGS)

  def Generate(self, cycle, **kwargs):
    output = io.StringIO()
    with contextlib.redirect_stdout(output):
      pairings = swiss.GeneratePairings(
          standings.Standings(self.directory, cycle), **kwargs)
    return [(p.id, q and q.id) for (p, q) in pairings], output.getvalue()

  def testTwoCycles(self):
    pairings, output = self.Generate(1, write=True)
    self.assertEqual(
        [('alice', 'bob'), ('erin', 'carol'), ('dave', None)], pairings)
    self.assertIn('Alice (.800) vs. Bob (.600)', output)
    self.assertIn('Dave (.200) vs. BYE', output)
    pairings, _ = self.Generate(2)
    self.assertEqual(
        [('alice', 'erin'), ('bob', 'dave'), ('carol', None)], pairings)
    self.assertFalse(
        os.path.exists(os.path.join(self.directory, 'cycle-2.tsv')))

  def testTabprint(self):
    _, output = self.Generate(1, tabprint=True)
    self.assertIn('Alice\tBob\n', output)
    self.assertIn('Dave\tBYE\n', output)

  def testLowestRankedBye(self):
    with open(os.path.join(self.directory, 'cycle-1.tsv'), 'w') as f:
      f.write('dave\t\n')
    pairings, _ = self.Generate(2, bye_policy='lowest_ranked')
    self.assertEqual(('carol', None), pairings[-1])

  def testStepBudget(self):
    with open(os.path.join(self.directory, 'cycle-1.tsv'), 'w') as f:
      f.write('alice\tbob\n')
    with self.assertRaises(swiss.SearchBudgetExceeded):
      self.Generate(2, max_steps=1)


class TestMain(absltest.TestCase):

  def setUp(self):
    super().setUp()
    if not swiss.FLAGS.is_parsed():
      swiss.FLAGS.mark_as_parsed()
    self.directory = self.enter_context(tempfile.TemporaryDirectory())

  def testWrongArgumentCount(self):
    with self.assertRaises(app.UsageError):
      swiss.Main(['swiss.py', self.directory])

  def testNoPairingFound(self):
    with open(os.path.join(self.directory, 'standings.tsv'), 'w') as f:
      f.write('username\tname\twins\tlosses\nalice\tAlice\t1\t0\n'
              'bob\tBob\t0\t1\n')
    with open(os.path.join(self.directory, 'cycle-1.tsv'), 'w') as f:
      f.write('alice\tbob\n')
    with contextlib.redirect_stdout(io.StringIO()):
      with self.assertRaises(SystemExit) as e:
        swiss.Main(['swiss.py', self.directory, '2'])
    self.assertStartsWith(str(e.exception.code), 'No pairings found: ')


if __name__ == '__main__':
  absltest.main()
