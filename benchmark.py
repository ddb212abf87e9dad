from sqlalchemy_record import Field, Gateway, Query, Record, ScalarKind
import argparse
import time
import random
from faker import Faker


random.seed(42)
fake = Faker()
CATEGORIES = list("ABCDEFGHIJK")

class Item(Record):
    __tablename__ = "items"

    name = Field(ScalarKind.TEXT)
    active = Field(ScalarKind.BOOLEAN)
    category = Field(ScalarKind.TEXT)
    price = Field(ScalarKind.DOUBLE)
    cost = Field(ScalarKind.DOUBLE)

def generate_items(n):
    for _ in range(n):
        yield Item(
            name=fake.name(),
            active=random.choice([True, False]),
            category=random.choice(CATEGORIES),
            price=round(random.uniform(5, 500), 2),
            cost=round(random.uniform(1, 300), 2),
        )

def generate_random_select_query(gateway):
    query = Query(gateway).from_(Item)

    if random.random() < 0.5:
        query.where("active = ?", random.choice([True, False]))

    if random.random() < 0.7:
        subset = random.sample(CATEGORIES, random.randint(1, 4))
        placeholders = ", ".join("?" for _ in subset)
        op = random.choice(["IN", "NOT IN"])
        query.where(f"category {op} ({placeholders})", *subset)

    if random.random() < 0.6:
        op = random.choice([">", "<", "<=", ">="])
        query.where(f"price {op} ?", round(random.uniform(10, 400), 2))

    if random.random() < 0.3:
        op = random.choice([">", "<", "<=", ">="])
        query.where(f"cost {op} ?", round(random.uniform(10, 200), 2))

    if query.clauses.where is None:
        query.where("active = ?", True)

    return query

def inserts(gateway, count, mode):
    items = list(generate_items(count))

    insert_start = time.time()
    if mode == "save":
        gateway.disable_commit()
        for item in items:
            item.save(gateway)
        gateway.commit()
    else:
        Item.insert_many(items, gateway, chunk_size=500, inline_literals=(mode == "inline"))
    insert_duration = time.time() - insert_start
    print(f"Inserted {count} items ({mode}) in {insert_duration:.2f} seconds.")
    return insert_duration

def selects(gateway, count, fetch_type):
    queries = [generate_random_select_query(gateway) for _ in range(count)]

    query_start = time.time()
    for query in queries:
        if fetch_type == "limit":
            query.limit(5)

        if fetch_type == "first":
            query.first()
        else:
            query.all()

    query_duration = time.time() - query_start
    print(f"Executed {count} select queries ({fetch_type}) in {query_duration:.2f} seconds.")
    return query_duration

def updates(gateway, random_ids):
    update_start = time.time()
    for rid in random_ids:
        Query(gateway).from_(Item).update({
            "name": fake.name(),
            "category": random.choice(CATEGORIES),
            "active": random.choice([True, False]),
        }, id=rid)
    update_duration = time.time() - update_start
    print(f"Executed {len(random_ids)} updates in {update_duration:.2f} seconds.")
    return update_duration

def deletes(gateway, random_ids):
    delete_start = time.time()
    for rid in random_ids:
        Query(gateway).from_(Item).drop(rid)
    delete_duration = time.time() - delete_start
    print(f"Deleted {len(random_ids)} items in {delete_duration:.2f} seconds.")
    return delete_duration

def run_benchmark(mode="batch", count=100_000):
    print(f"Running benchmark: insert mode={mode}, count={count}")

    with Gateway() as gateway:
        Item.create_table(gateway)

        elapsed = inserts(gateway, count, mode)
        elapsed += selects(gateway, 500, fetch_type="all")
        elapsed += selects(gateway, 500, fetch_type="limit")
        elapsed += selects(gateway, 500, fetch_type="first")

        random_ids = random.sample(range(1, count + 1), min(500, count))
        elapsed += updates(gateway, random_ids)

        random_ids = random.sample(range(1, count + 1), min(500, count))
        elapsed += deletes(gateway, random_ids)

    print(f"Total runtime for {mode}: {elapsed:.2f} seconds.")



if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--mode", choices=["save", "batch", "inline"], required=True)
    parser.add_argument("--count", type=int, default=10_000)
    args = parser.parse_args()
    run_benchmark(args.mode, args.count)
