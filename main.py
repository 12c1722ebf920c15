import functions_framework

import player as player_lib
import swiss


@functions_framework.http
def generate_pairings(request):
    req = request.get_json(silent=True)
    if not req:
        return "Invalid Request", 400

    for f in ["players"]:
        if f not in req:
            return f'Request is missing "{f}"', 400

    try:
        players = [
            player_lib.FromRecord(
                p["id"], p.get("name", p["id"]), p.get("wins", 0),
                p.get("losses", 0)) for p in req["players"]
        ]
        previous = [tuple(match) for match in req.get("previous", [])]
        bye_policy = swiss.ByePolicy(req.get("bye_policy", "first_found"))
        pairer = swiss.Pairer(
            players,
            identity=player_lib.Identity,
            rank=player_lib.Rank,
            bye_policy=bye_policy)
        pairer.Exclude(player_lib.ResolveMatches(previous, players))
    except (KeyError, TypeError, ValueError, swiss.Error) as e:
        return f"Invalid Request: {e}", 400

    try:
        pairings = pairer.MakePairings()
    except swiss.SearchExhausted as e:
        return {"error": str(e)}, 409
    return {
        "pairings": [[p.id, None if q is None else q.id] for p, q in pairings]
    }
