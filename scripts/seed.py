"""Database seeder: fills a few blogs with posts through the post store."""
import asyncio
import argparse
import random
import time

from blogserver.database import engine, async_session, commit, Base
from blogserver.services import post_store

TOPICS = ["python", "fastapi", "postgresql", "redis", "docker", "kubernetes",
          "testing", "performance", "security", "asyncio"]


async def seed(blogs: int, posts_per_blog: int):
    print(f"Seeding: {blogs} blogs x {posts_per_blog} posts")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    for blog_id in range(1, blogs + 1):
        for i in range(posts_per_blog):
            topic = random.choice(TOPICS)
            # One session per post, as a request would use.
            async with async_session() as session:
                await post_store.create_post(
                    session,
                    blog_id,
                    user_id=random.randint(1, 20),
                    title=f"Notes on {topic} #{i}",
                    text=f"Some thoughts about {topic}. " * 10,
                )
                await commit(session)
        print(f"  Blog {blog_id}: {posts_per_blog} posts created")

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")


def main():
    parser = argparse.ArgumentParser(description="Seed the posts database")
    parser.add_argument("--blogs", type=int, default=5, help="Number of blogs")
    parser.add_argument("--posts", type=int, default=50, help="Posts per blog")
    args = parser.parse_args()
    asyncio.run(seed(args.blogs, args.posts))


if __name__ == "__main__":
    main()
