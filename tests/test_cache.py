import threading, unittest

from . import _common as c

nt = c.nt


class FeedCacheTests(unittest.TestCase):

	def setUp(self):
		self.tables = c.load_test_data('basic')['tables']
		self.cache, self.fetch, self.time = c.feed_cache(self.tables)

	def test_initial_refresh(self):
		self.assertIsNone(self.cache.snapshot)
		snapshot = self.cache.ensure_fresh()
		self.assertIs(snapshot, self.cache.snapshot)
		self.assertEqual(self.fetch.calls, 1)
		self.assertEqual((snapshot.stop_src.id, snapshot.stop_dst.id), ('BL', 'UN'))
		self.assertEqual(snapshot.services, {'WEEKDAY', 'HOLIDAY'})
		self.assertEqual(snapshot.service_date, '20261016')
		self.assertEqual(snapshot.fetched_at, self.time())
		self.assertNotIn('T10', snapshot.trips) # no stop_times for these stops
		self.assertIn('T1', snapshot.trips)

	def test_ttl(self):
		snapshot = self.cache.ensure_fresh()
		self.time.advance(self.cache.conf.feed_ttl - 1)
		self.assertIs(self.cache.ensure_fresh(), snapshot)
		self.assertEqual(self.fetch.calls, 1)
		self.time.advance(1)
		self.assertIsNot(self.cache.ensure_fresh(), snapshot)
		self.assertEqual(self.fetch.calls, 2)

	def test_date_change(self):
		snapshot = self.cache.ensure_fresh()
		self.time.advance(60)
		snapshot_next = self.cache.ensure_fresh(c.reading('20261017', '00:01'))
		self.assertEqual(self.fetch.calls, 2)
		self.assertEqual(snapshot_next.service_date, '20261017')
		self.assertEqual(snapshot_next.services, {'SAT'})
		self.assertEqual(snapshot.services, {'WEEKDAY', 'HOLIDAY'})

	def test_failed_refresh_keeps_snapshot(self):
		snapshot = self.cache.ensure_fresh()
		self.time.advance(self.cache.conf.feed_ttl)
		self.fetch.error = nt.feed.FeedFetchError('GTFS download failed: 503')
		with self.assertRaises(nt.feed.FeedFetchError):
			self.cache.ensure_fresh()
		self.assertIs(self.cache.snapshot, snapshot)
		self.fetch.error = None
		self.assertIsNot(self.cache.ensure_fresh(), snapshot)

	def test_missing_mandatory_table(self):
		for table in 'stops', 'trips', 'stop_times':
			tables = dict(self.tables)
			del tables[table]
			cache, fetch, time = c.feed_cache(tables)
			with self.assertRaises(nt.gtfs.FeedTableMissing) as ctx: cache.ensure_fresh()
			self.assertEqual(ctx.exception.table, table)
			self.assertIsNone(cache.snapshot)

	def test_missing_optional_tables(self):
		tables = dict(self.tables)
		for table in 'routes', 'calendar', 'calendar_dates': del tables[table]
		cache, fetch, time = c.feed_cache(tables)
		snapshot = cache.ensure_fresh()
		self.assertEqual(snapshot.routes, dict())
		self.assertEqual(snapshot.services, set())
		self.assertEqual(nt.engine.query_departures(snapshot, 0), [])

	def test_station_not_found(self):
		cache, fetch, time = c.feed_cache(
			self.tables, conf=c.board_conf(station_dst='kipling east') )
		with self.assertRaises(nt.gtfs.FeedStopNotFound):
			cache.ensure_fresh()
		self.assertIsNone(cache.snapshot)

	def test_archive_subdir(self):
		self.cache.fetch = lambda: c.feed_archive(self.tables, subdir='gtfs')
		snapshot = self.cache.ensure_fresh()
		self.assertEqual(len(snapshot.stop_times), 9)


class BlockingFetch(c.CountingFetch):

	def __init__(self, tables):
		super(BlockingFetch, self).__init__(tables)
		self.started, self.release = threading.Event(), threading.Event()

	def __call__(self):
		self.calls += 1
		self.started.set()
		self.release.wait(10)
		if self.error: raise self.error
		return c.feed_archive(self.tables)


class FeedCacheConcurrencyTests(unittest.TestCase):

	threads = 5

	def setUp(self):
		tables = c.load_test_data('basic')['tables']
		self.cache, fetch, self.time = c.feed_cache(tables)
		self.fetch = self.cache.fetch = BlockingFetch(tables)
		self.results = list()

	def run_callers(self):
		def call():
			try: self.results.append(self.cache.ensure_fresh())
			except Exception as err: self.results.append(err)
		leader = threading.Thread(target=call)
		leader.start()
		self.assertTrue(self.fetch.started.wait(10))
		followers = list(threading.Thread(target=call) for n in range(self.threads - 1))
		for th in followers: th.start()
		followers_waiting = list(th.join(0.2) or th.is_alive() for th in followers)
		self.assertTrue(all(followers_waiting)) # all waiting for leader
		self.assertEqual(self.fetch.calls, 1)
		self.fetch.release.set()
		for th in [leader] + followers: th.join(10)
		self.assertEqual(len(self.results), self.threads)

	def test_single_flight(self):
		self.run_callers()
		self.assertEqual(self.fetch.calls, 1)
		self.assertTrue(all(res is self.cache.snapshot for res in self.results))

	def test_single_flight_date_change(self):
		results = dict()
		def call(key, reading):
			results[key] = self.cache.ensure_fresh(reading)
		leader = threading.Thread(target=call, args=('leader', c.reading('20261016', '23:59:59')))
		leader.start()
		self.assertTrue(self.fetch.started.wait(10))
		follower = threading.Thread(target=call, args=('follower', c.reading('20261017', '00:00:01')))
		follower.start()
		follower.join(0.2)
		self.assertTrue(follower.is_alive())
		self.fetch.release.set()
		for th in leader, follower: th.join(10)
		self.assertEqual(results['leader'].service_date, '20261016')
		self.assertEqual(results['follower'].service_date, '20261017')
		self.assertEqual(results['follower'].services, {'SAT'})
		self.assertIs(self.cache.snapshot, results['follower'])
		self.assertEqual(self.fetch.calls, 2)

	def test_single_flight_error(self):
		self.fetch.error = nt.feed.FeedFetchError('GTFS download failed: 500')
		self.run_callers()
		self.assertEqual(self.fetch.calls, 1)
		self.assertTrue(all(res is self.fetch.error for res in self.results))
		self.assertIsNone(self.cache.snapshot)
