"""Seed demo profiles and favorites, then optionally run a search.

Typical usage:
	python -m scripts.seed_demo_matches --users 8
	python -m scripts.seed_demo_matches --users 8 --search demo_0

Every demo user gets a complete profile and a favorite set drawn from a small
catalogue so that overlaps of three or more items are common.
"""

from __future__ import annotations

import argparse
import asyncio
import random

from dotenv import load_dotenv

load_dotenv()

from mio.domain.matching.models import CompatibilityProfile  # noqa: E402
from mio.domain.matching.outcomes import SearchCompleted  # noqa: E402
from mio.domain.matching.service import MatchService  # noqa: E402
from mio.infra.redis import close_redis  # noqa: E402

CATALOGUE = [f"show-{n}" for n in range(1, 16)]
CITIES = ["Montreal", "Toronto", "Vancouver"]
GENDERS = ["male", "female"]
PREFERENCES = ["male", "female", "everyone"]


def _demo_profile(rng: random.Random, index: int) -> CompatibilityProfile:
	return CompatibilityProfile(
		user_id=f"demo_{index}",
		display_name=f"Demo {index}",
		gender=rng.choice(GENDERS),
		match_with=rng.choice(PREFERENCES),
		location=rng.choice(CITIES),
		match_location=rng.choice(["local", "worldwide", "worldwide"]),
		age=rng.randint(18, 40),
	)


async def seed(users: int, seed_value: int, search_user: str | None) -> None:
	rng = random.Random(seed_value)
	service = MatchService()
	for index in range(users):
		profile = _demo_profile(rng, index)
		await service.profiles.save_profile(profile)
		await service.governor.reset(profile.user_id)
		for item_id in rng.sample(CATALOGUE, k=rng.randint(3, 10)):
			await service.favorites.add_favorite(profile.user_id, item_id)
		print(f"seeded {profile.user_id} ({profile.gender} -> {profile.match_with}, {profile.location})")

	if search_user:
		outcome = await service.search_matches(search_user)
		if isinstance(outcome, SearchCompleted):
			print(f"{search_user}: {outcome.new_match_count} new, {len(outcome.matches)} total")
			for record in outcome.matches:
				print(f"  {record.user_id:<10} {record.match_level.value:<10} {', '.join(record.common_show_ids)}")
		else:
			print(f"{search_user}: {outcome}")
	await close_redis()


def main() -> None:
	parser = argparse.ArgumentParser(description=__doc__)
	parser.add_argument("--users", type=int, default=8)
	parser.add_argument("--seed", type=int, default=7)
	parser.add_argument("--search", dest="search_user", default=None)
	args = parser.parse_args()
	asyncio.run(seed(args.users, args.seed, args.search_user))


if __name__ == "__main__":
	main()
