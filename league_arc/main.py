import argparse
import asyncio
import sys
from typing import List, Optional

from league_arc.config import Config
from league_arc.constants import TierConstants
from league_arc.data_models.league import ResultInput
from league_arc.database.database import Database
from league_arc.database.fixture_operations import FixtureOperations
from league_arc.database.models import FixtureStatus, LeagueMode, LeagueTier
from league_arc.operations.league_operations import LeagueOperations
from league_arc.services.generation_lock import GenerationLock
from league_arc.services.leaderboard import GlobalLeaderboardService
from league_arc.services.standings import StandingsService
from league_arc.utils.league_exceptions import LeagueArcException, LeagueNotFoundError
from league_arc.utils.logger import setup_logger


class LeagueArcApp:
    """Wires the database, operations and services together for admin commands"""

    def __init__(self, database_url: Optional[str] = None):
        self.logger = setup_logger(__name__)
        self.db = Database(database_url)
        self.generation_lock: Optional[GenerationLock] = None
        self.leagues: Optional[LeagueOperations] = None
        self.fixtures: Optional[FixtureOperations] = None
        self.standings: Optional[StandingsService] = None
        self.leaderboard: Optional[GlobalLeaderboardService] = None

    async def setup(self):
        """Initialize database, lock and services"""
        Config.validate()
        await self.db.initialize()

        self.generation_lock = await GenerationLock.create()
        self.leagues = LeagueOperations(self.db)
        self.fixtures = FixtureOperations(self.db, self.generation_lock)
        self.standings = StandingsService(self.db.async_session)
        self.leaderboard = GlobalLeaderboardService(self.db.async_session)
        self.logger.info("League Arc setup complete")

    async def close(self):
        if self.generation_lock:
            await self.generation_lock.close()
        await self.db.close()


def parse_score(value: str) -> ResultInput:
    """Parse FIXTURE_ID:HOME-AWAY, e.g. 12:3-1"""
    try:
        fixture_part, score_part = value.split(':')
        home, away = score_part.split('-')
        return ResultInput(int(fixture_part), int(home), int(away))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected FIXTURE_ID:HOME-AWAY, got '{value}'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='league-arc', description='League scheduling and ranking admin tool')
    parser.add_argument('--database-url', default=None, help='Override DATABASE_URL')
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('init-db', help='Create tables')

    create = sub.add_parser('create-league', help='Create a league')
    create.add_argument('name')
    create.add_argument('--tier', type=int, choices=[t.value for t in LeagueTier], default=LeagueTier.AMATEUR.value)
    create.add_argument('--mode', choices=[m.value for m in LeagueMode], default=LeagueMode.ROUND_ROBIN.value)
    create.add_argument('--max-participants', type=int, default=20)
    create.add_argument('--unranked', action='store_true')

    member = sub.add_parser('add-member', help='Enroll a participant')
    member.add_argument('league_id', type=int)
    member.add_argument('user_id')
    member.add_argument('team_label')
    member.add_argument('--username')

    generate = sub.add_parser('generate', help='Generate fixtures for a league')
    generate.add_argument('league_id', type=int)
    generate.add_argument('--format', choices=[m.value for m in LeagueMode], default=None,
                          help="Defaults to the league's mode")

    submit = sub.add_parser('submit', help='Submit results as FIXTURE_ID:HOME-AWAY')
    submit.add_argument('results', nargs='+', type=parse_score)

    fixtures = sub.add_parser('fixtures', help="List a league's fixtures")
    fixtures.add_argument('league_id', type=int)
    fixtures.add_argument('--status', choices=[s.value for s in FixtureStatus])

    reseed = sub.add_parser('reseed', help='Re-seed the knockout bracket from the table phase')
    reseed.add_argument('league_id', type=int)

    standings = sub.add_parser('standings', help='Show a league table')
    standings.add_argument('league_id', type=int)

    board = sub.add_parser('leaderboard', help='Show the global leaderboard')
    board.add_argument('--tier', type=int, choices=[t.value for t in LeagueTier])
    board.add_argument('--limit', type=int, default=None)
    board.add_argument('--offset', type=int, default=0)

    return parser


async def run_command(app: LeagueArcApp, args: argparse.Namespace) -> int:
    if args.command == 'init-db':
        print("✅ Database initialized")

    elif args.command == 'create-league':
        league = await app.leagues.create_league(
            args.name,
            tier=LeagueTier(args.tier),
            mode=LeagueMode(args.mode),
            max_participants=args.max_participants,
            is_ranked=not args.unranked,
        )
        print(f"✅ Created league {league.id}: {league.name}")

    elif args.command == 'add-member':
        await app.leagues.add_member(args.league_id, args.user_id, args.team_label, args.username)
        print(f"✅ {args.team_label} joined league {args.league_id}")

    elif args.command == 'generate':
        if args.format is None:
            fixtures = await app.fixtures.generate_league_fixtures(args.league_id)
        elif LeagueMode(args.format) == LeagueMode.UEFA_HYBRID:
            fixtures = await app.fixtures.generate_uefa_tournament(args.league_id)
        else:
            fixtures = await app.fixtures.generate_round_robin_fixtures(args.league_id)
        print(f"✅ Generated {len(fixtures)} fixtures starting from GW{fixtures[0].gameweek}")
        for f in fixtures:
            stage = f" [{f.stage.value}]" if f.stage else ""
            print(f"   #{f.id} GW{f.gameweek}{stage}: {f.home_team} vs {f.away_team}")

    elif args.command == 'submit':
        report = await app.fixtures.submit_results_batch(args.results)
        print(f"✅ Successfully added {report.success_count} results")
        for item in report.errors:
            message = getattr(item.error, 'user_message', str(item.error))
            print(f"Item {item.index + 1} (fixture {item.fixture_id}): {message}")
        return 1 if report.errors else 0

    elif args.command == 'fixtures':
        if await app.db.get_league(args.league_id) is None:
            raise LeagueNotFoundError(args.league_id)
        status = FixtureStatus(args.status) if args.status else None
        fixtures = await app.db.get_league_fixtures(args.league_id, status=status)
        print(f"📅 {len(fixtures)} fixtures in league {args.league_id}")
        for f in fixtures:
            stage = f" [{f.stage.value}]" if f.stage else ""
            score = f"{f.result.home_score}-{f.result.away_score}" if f.result else "vs"
            print(f"   #{f.id} GW{f.gameweek}{stage}: {f.home_team} {score} {f.away_team}")

    elif args.command == 'reseed':
        fixtures = await app.fixtures.reseed_knockout(args.league_id)
        print(f"✅ Re-seeded {len(fixtures)} knockout fixtures")

    elif args.command == 'standings':
        league, rows = await app.standings.compute_standings_with_league(args.league_id)
        print(f"{league.name}")
        print(f"{'Pos':>3}  {'Team':<24} {'P':>3} {'W':>3} {'D':>3} {'L':>3} {'GF':>4} {'GA':>4} {'GD':>4} {'Pts':>4}  Form")
        for row in rows:
            print(
                f"{row.position:>3}  {row.team_label:<24} {row.played:>3} {row.won:>3} {row.drawn:>3} "
                f"{row.lost:>3} {row.goals_for:>4} {row.goals_against:>4} {row.goal_difference:>+4} "
                f"{row.points:>4}  {''.join(row.form)}"
            )

    elif args.command == 'leaderboard':
        tier = LeagueTier(args.tier) if args.tier else None
        page = await app.leaderboard.get_page(tier=tier, limit=args.limit, offset=args.offset)
        print(f"🏆 Global leaderboard ({page.total_players} players)")
        for rank, entry in enumerate(page.entries, start=page.offset + 1):
            best = entry.best_league
            print(
                f"{rank:>4}. {entry.username:<24} {entry.global_score:>7.2f}  "
                f"best: {best.league_name} ({best.position}/{best.league_size}, "
                f"{TierConstants.TIER_NAMES[int(best.tier)]})  "
                f"win rate {entry.stats.win_rate:.1f}%"
            )
        if page.used_fallback:
            print("ℹ️  Some players are ranked by win rate (no league positions yet)")

    return 0


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    app = LeagueArcApp(args.database_url)
    try:
        await app.setup()
        return await run_command(app, args)
    except LeagueArcException as e:
        app.logger.warning(f"{args.command} failed: {e}")
        print(e.user_message)
        return 1
    except ValueError as e:
        app.logger.warning(f"{args.command} rejected: {e}")
        print(f"❌ {e}")
        return 1
    finally:
        await app.close()


def run():
    """Console script entry point"""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
