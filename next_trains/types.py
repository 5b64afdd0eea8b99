import enum

from . import utils as u


### Records parsed from feed tables

@u.attr_struct(frozen=True)
class Stop: keys = 'id name'

@u.attr_struct(frozen=True)
class Route:
	keys = 'id short_name long_name'

	@property
	def display_name(self): return self.short_name or self.long_name

@u.attr_struct(frozen=True)
class Trip: keys = 'id service_id headsign route_id'


class CalendarException(enum.Enum): added, removed = '1', '2'

@u.attr_struct(frozen=True)
class CalendarRule:
	keys = 'service_id date_start date_end weekdays' # weekdays: 7 bools, monday first

	def active_on(self, date_str, weekday):
		return self.date_start <= date_str <= self.date_end and self.weekdays[weekday]

@u.attr_struct(frozen=True)
class CalendarDate: keys = 'service_id date exception'


### Stop-time index

@u.attr_struct(frozen=True)
class StopTimeSide: keys = 'time dts seq'

@u.attr_struct
class StopTimeEntry:
	'''Times of a single trip at the two stops of interest.
		Either side can be missing until both rows are seen, or at all.'''
	src = u.attr_init(None)
	dst = u.attr_init(None)

	@property
	def complete(self): return bool(self.src and self.dst)


### Snapshot - everything queries need, built on each feed refresh

@u.attr_struct(frozen=True, repr=False)
class Snapshot:
	keys = 'stop_src stop_dst routes trips services stop_times service_date fetched_at'

	def __repr__(self):
		return '<Snapshot {} [{} -> {}] trips={:,} services={:,}>'.format(
			self.service_date, self.stop_src.id, self.stop_dst.id,
			len(self.stop_times), len(self.services) )


### Query results

@u.attr_struct(frozen=True)
class Departure:
	keys = 'dep arr line headsign dts_dep'

	def as_dict(self):
		return dict(dep=self.dep, arr=self.arr, line=self.line, headsign=self.headsign)

@u.attr_struct(frozen=True)
class BoardResult: keys = 'ok data'
