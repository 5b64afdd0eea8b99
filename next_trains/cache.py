import threading, time

from . import utils as u, gtfs


@u.attr_struct
class RefreshFlight:
	'Refresh in progress, which concurrent callers wait for instead of starting their own.'
	done = u.attr_init(threading.Event)
	snapshot = u.attr_init(None)
	error = u.attr_init(None)


class FeedCache:
	'''Holds last Snapshot built from the feed, rebuilding it when stale.
		Snapshot is only ever replaced as a whole, so readers always see a consistent one,
			and failed refresh leaves previously installed snapshot (if any) as it was.'''

	snapshot = None

	def __init__(self, fetch, conf, clock, time_func=time.monotonic):
		'''fetch - callable returning FeedArchive (e.g. feed.FeedSource).
			clock - clock.LocalClock or anything else with now() -> ClockReading.'''
		self.fetch, self.conf, self.clock, self.time_func = fetch, conf, clock, time_func
		self._flight, self._flight_lock = None, threading.Lock()
		self.log = u.get_logger('nt.cache')

	def age(self, snapshot=None):
		snapshot = snapshot or self.snapshot
		if not snapshot: return
		return self.time_func() - snapshot.fetched_at

	def stale(self, snapshot, reading):
		'''Check if snapshot has to be rebuilt for clock reading.
			Active services are only valid for one date, so date change invalidates it too.'''
		if not snapshot: return True
		if self.age(snapshot) >= self.conf.feed_ttl: return True
		return snapshot.service_date != reading.date

	def ensure_fresh(self, reading=None):
		'Return Snapshot valid for clock reading, refreshing it first if necessary.'
		if reading is None: reading = self.clock.now()
		snapshot = self.snapshot
		if not self.stale(snapshot, reading): return snapshot

		with self._flight_lock:
			flight, leader = self._flight, False
			if not flight:
				snapshot = self.snapshot # can be installed by flight that just finished
				if not self.stale(snapshot, reading): return snapshot
				flight = self._flight = RefreshFlight()
				leader = True

		if not leader:
			self.log.debug('Waiting for in-flight feed refresh')
			flight.done.wait()
			if flight.error: raise flight.error
			if self.stale(flight.snapshot, reading): # flight for other date, e.g. before midnight
				return self.ensure_fresh(reading)
			return flight.snapshot

		try: flight.snapshot = self.refresh(reading)
		except Exception as err:
			flight.error = err
			raise
		finally:
			with self._flight_lock: self._flight = None
			flight.done.set()
		return flight.snapshot

	def refresh(self, reading):
		'''Fetch and parse feed, installing new Snapshot on success.
			Any errors are logged and propagated, keeping current snapshot in place.'''
		self.log.debug('Refreshing feed snapshot for date: {}', reading.date)
		td = time.monotonic()
		try:
			archive = self.fetch()
			snapshot = gtfs.build_snapshot(archive, self.conf, reading, self.time_func())
		except Exception as err:
			self.log.error( 'Feed refresh failed, keeping'
				' previous snapshot ({}): [{}] {}', self.snapshot or 'none',
				err.__class__.__name__, err )
			raise
		self.snapshot = snapshot
		self.log.info('Installed new feed snapshot (took {:.1f}s): {}', time.monotonic() - td, snapshot)
		return snapshot
