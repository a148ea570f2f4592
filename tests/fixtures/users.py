"""Phone numbers of the users registered in the fake backend."""

PASSENGER_PHONE = "3001112222"
DRIVER_PHONE = "3109998888"
FRIEND_PHONE = "3205554444"
