# python3
"""Liaison to the league's standings files.

A league directory holds `standings.tsv` (a header row, then username, name,
wins and losses per player) and one `cycle-N.tsv` per paired cycle with the
two usernames of each match. The second column is empty for a bye.
"""

from collections import Counter
from typing import List
import csv
import os

import player as player_lib

STANDINGS_FILENAME = "standings.tsv"


class Standings:
    """Marshals data to and from a league directory."""

    def __init__(self, directory, cycle: int):
        if cycle < 1:
            raise ValueError(f"Cycles are numbered from 1, not {cycle}.")
        self.directory = directory
        self.cycle = cycle

    def _CycleFilename(self, cycle) -> str:
        return os.path.join(self.directory, f"cycle-{cycle}.tsv")

    def GetPlayers(self) -> List[player_lib.Player]:
        """Reads the players from the standings file."""
        filename = os.path.join(self.directory, STANDINGS_FILENAME)
        with open(filename, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f, delimiter="\t"))
        player_list = []
        for row in rows[1:]:
            if not row:
                continue
            id_, name, wins, losses = row[:4]
            player_list.append(
                player_lib.FromRecord(id_, name, wins, losses))
        print(f"Loaded {len(player_list)} players from {filename}")
        _validate_players(player_list)
        return player_list

    def GetPreviousPairings(self, players: List[player_lib.Player]):
        """Reads the matches of every cycle before this one."""
        previous_pairings = []
        for i in range(1, self.cycle):
            with open(self._CycleFilename(i), newline="",
                      encoding="utf-8") as f:
                rows = [row for row in csv.reader(f, delimiter="\t") if row]
            previous_pairings.extend(
                (row[0], row[1] if len(row) > 1 else "") for row in rows)
        return player_lib.ResolveMatches(previous_pairings, players)

    def Writeback(self, pairings):
        """Write the pairings to this cycle's file."""
        filename = self._CycleFilename(self.cycle)
        print("Writing to", filename)
        with open(filename, "w", newline="", encoding="utf-8") as output:
            writer = csv.writer(output, delimiter="\t", lineterminator="\n")
            for p, q in pairings:
                writer.writerow([p.id, "" if q is None else q.id])


def _validate_players(players: List[player_lib.Player]):
    player_ids = Counter([player.id for player in players])
    duplicates = [k for (k, v) in player_ids.items() if v > 1]
    if len(duplicates) > 0:
        raise DuplicatePlayerError(f"Duplicate player IDs: {duplicates}")


class DuplicatePlayerError(Exception):
    """Error due to duplicate players."""
