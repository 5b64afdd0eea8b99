import datetime

import pytz

from . import utils as u


@u.attr_struct(frozen=True)
class ClockReading:
	'''Local date/time used for one board query.
		date is YYYYMMDD string, dts - seconds since midnight,
			weekday - 0 for monday ... 6 for sunday.'''
	keys = 'date dts weekday hhmm'

	@classmethod
	def from_datetime(cls, dt):
		dts = dt.hour * 3600 + dt.minute * 60 + dt.second
		return cls(dt.strftime('%Y%m%d'), dts, dt.weekday(), u.dts_format(dts))

	@classmethod
	def from_values(cls, date_str, time_str='00:00'):
		'Build reading from YYYYMMDD date and HH:MM[:SS] time strings.'
		date = datetime.datetime.strptime(date_str, '%Y%m%d')
		dts = u.dts_parse(time_str)
		return cls(date_str, dts, date.weekday(), u.dts_format(dts))


class LocalClock:
	'Source of ClockReading values for "now" in specified timezone.'

	def __init__(self, timezone='America/Toronto', now_func=None):
		if isinstance(timezone, str): timezone = pytz.timezone(timezone)
		self.tz, self.now_func = timezone, now_func or datetime.datetime.now

	def now(self):
		return ClockReading.from_datetime(self.now_func(self.tz))
