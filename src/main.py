# Command line entry point: print a draw for a list of participants

import argparse
import random
import yaml
from tourney.elimination import build_draw, generate_first_round_matches
from tourney.models import Participant, SINGLES, DOUBLES


def load_participants(file_path):
    """
    Read participants from YAML, either a list of names or of mappings:

        - player_id: alice
          seed_position: 1
          ranking: 12.5
    """
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file) or []
    participants = []
    for entry in data:
        if isinstance(entry, dict):
            participants.append(Participant.from_dict(entry))
        else:
            participants.append(Participant(entry))
    return participants


def format_entrant(entrant):
    if entrant is None:
        return 'BYE'
    name = f"{entrant.player_id} / {entrant.partner_id}" if entrant.partner_id else entrant.player_id
    return f"{name} [{entrant.seed}]" if entrant.seed else name


def main(argv=None):
    parser = argparse.ArgumentParser(description='Print a single elimination draw.')
    parser.add_argument('participants', help='YAML file listing the participants')
    parser.add_argument('--doubles', action='store_true', help='pair players into doubles teams')
    parser.add_argument('--seed', type=int, help='random seed for a reproducible draw')
    args = parser.parse_args(argv)

    participants = load_participants(args.participants)
    event_type = DOUBLES if args.doubles else SINGLES
    draw = build_draw(event_type, participants, random.Random(args.seed))

    print(f"# Draw of {draw.draw_size} ({draw.seeded_count} seeds, {draw.bye_count} byes)")
    for i, entrant in enumerate(draw.slots):
        print(f"{i + 1:>3}. {format_entrant(entrant)}")
    if draw.unpaired:
        print(f"Unpaired: {', '.join(draw.unpaired)}")

    print()
    for match in generate_first_round_matches('cli', draw):
        print(f"M{match.match_number} {match.round_name}: "
              f"{format_entrant(draw.slots[2 * match.bracket_position])} vs "
              f"{format_entrant(draw.slots[2 * match.bracket_position + 1])}")


if __name__ == '__main__':
    main()
