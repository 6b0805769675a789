"""Fire concurrent CreatePost calls at one blog and check the assigned ids."""
import asyncio
import argparse
import statistics
import time

import httpx

BASE_URL = "http://localhost:8000"


async def create_one(client: httpx.AsyncClient, blog_id: int, n: int) -> tuple[int | None, float]:
    start = time.perf_counter()
    resp = await client.post(
        f"{BASE_URL}/api/v1/blogs/{blog_id}/posts",
        json={"user_id": 1, "title": f"Contention post {n}", "text": "load"},
    )
    elapsed = (time.perf_counter() - start) * 1000
    if resp.status_code != 201:
        return None, elapsed
    return resp.json()["post_id"], elapsed


async def run(blog_id: int, requests: int, concurrency: int):
    print(f"Creating {requests} posts in blog {blog_id} with {concurrency} concurrent clients")
    semaphore = asyncio.Semaphore(concurrency)

    async with httpx.AsyncClient(timeout=30) as client:
        try:
            await client.get(f"{BASE_URL}/health")
        except httpx.HTTPError as e:
            print(f"ERROR: Cannot connect to {BASE_URL}: {e}")
            return

        async def limited(n: int):
            async with semaphore:
                return await create_one(client, blog_id, n)

        results = await asyncio.gather(*(limited(n) for n in range(requests)))

    ids = [post_id for post_id, _ in results if post_id is not None]
    times = sorted(elapsed for _, elapsed in results)
    errors = requests - len(ids)

    print(f"  ok: {len(ids)}  errors: {errors}")
    print(f"  avg: {statistics.mean(times):.1f}ms  p95: {times[int(len(times) * 0.95)]:.1f}ms")
    if len(ids) != len(set(ids)):
        print("  FAIL: duplicate post ids were assigned")
    elif ids and sorted(ids) != list(range(min(ids), min(ids) + len(ids))):
        print("  WARN: assigned ids are not contiguous")
    else:
        print("  ids unique and contiguous")


def main():
    global BASE_URL
    parser = argparse.ArgumentParser(description="Concurrent CreatePost contention check")
    parser.add_argument("--blog-id", type=int, default=1000)
    parser.add_argument("-n", "--requests", type=int, default=200)
    parser.add_argument("-c", "--concurrency", type=int, default=20)
    parser.add_argument("--base-url", default=BASE_URL, help="API base URL")
    args = parser.parse_args()

    BASE_URL = args.base_url
    asyncio.run(run(args.blog_id, args.requests, args.concurrency))


if __name__ == "__main__":
    main()
